# This file is part of pymobilize,  distributed under license LGPL v3

''' This module defines the constraints: algebraic equations restricting the motion of the body tree.

	A constraint declares three kinds of equations:

	- `mp` holonomic equations  `perr(q, t) = 0`, also checked at velocity and acceleration level by their time derivatives
	- `mv` nonholonomic equations  `verr(q, u, t) = 0`, linear in `u`, also checked at acceleration level
	- `ma` acceleration-only equations  `aerr(q, u, udot, t) = 0`, linear in `udot`

	Each equation has a Lagrange multiplier, and the constraint knows the forces it applies for given multipliers. With `G` the jacobian of the errors with respect to the speeds (`P`, `V` or `A` according to the level), the generalized forces are always `G.T @ multipliers`.

	Constraint equations are written in the frame of the ancestor body: the deepest body dominating all the constrained bodies. Subclasses implement callbacks receiving a `ConstrainedKinematics`, which gives the placement, velocity and acceleration of each constrained body relative to the ancestor, and the speeds of the constrained mobilities.

	Callbacks of an equation kind are only called when the constraint declares equations of that kind:

		=================   ===========================================================================
		holonomic           position_errors, position_dot_errors, position_dotdot_errors, apply_position_forces
		nonholonomic        velocity_errors, velocity_dot_errors, apply_velocity_forces
		acceleration-only   acceleration_errors, apply_acceleration_forces
		=================   ===========================================================================
'''

import numpy as np
import scipy.linalg

from .mathutils import *
from .state import Stage, StageViolation, DimensionMismatch
from .body import relative_velocity, relative_acceleration

__all__ = ['Constraint', 'ConstrainedKinematics', 'ConstraintForces',
			'Rod', 'Ball', 'PointInPlane', 'ConstantAngle', 'ConstantOrientation', 'Weld',
			'ConstantSpeed', 'ConstantAcceleration', 'Custom']


class ConstrainedKinematics:
	''' Kinematics of the constrained bodies relative to the constraint ancestor, expressed in the ancestor frame

		Bodies are designated by their position `which` in the constraint list of constrained bodies.

		Attributes:
			time:    the state time
			q, u, udot:   coordinates, speeds and speed derivatives of the constrained mobilities (None when not available)
	'''
	def __init__(self, place, kin):
		A = place.ancestor.index
		X_GA = kin.transforms[A]
		X_AG = affineInverse(X_GA)
		self.time = kin.time
		self.transforms = [X_AG * kin.transforms[body.index]  for body in place.bodies]
		self.velocities = self.accelerations = None
		if kin.velocities is not None:
			V_GA = kin.velocities[A]
			self.velocities = [relative_velocity(X_GA, V_GA, kin.transforms[body.index], kin.velocities[body.index])
									for body in place.bodies]
			if kin.accelerations is not None:
				A_GA = kin.accelerations[A]
				self.accelerations = [relative_acceleration(X_GA, V_GA, A_GA,
										kin.transforms[body.index], kin.velocities[body.index], kin.accelerations[body.index])
									for body in place.bodies]
		self.q = kin.q[place.qmap]
		self.u = kin.u[place.umap] if kin.u is not None else None
		self.udot = kin.udot[place.umap] if kin.udot is not None else None
		self._qslots = place.qslots
		self._uslots = place.uslots

	def transform(self, which) -> mat4:
		''' `X_AB` placement of a constrained body in the ancestor '''
		return self.transforms[which]

	def rotation(self, which) -> mat3:
		return mat3(self.transforms[which])

	def origin(self, which) -> vec3:
		return translation(self.transforms[which])

	def velocity(self, which) -> SpatialVec:
		''' `V_AB` spatial velocity of a constrained body in the ancestor '''
		if self.velocities is None:
			raise StageViolation('velocities are not available at this stage')
		return self.velocities[which]

	def acceleration(self, which) -> SpatialVec:
		''' `A_AB` spatial acceleration of a constrained body in the ancestor '''
		if self.accelerations is None:
			raise StageViolation('accelerations are not available at this stage')
		return self.accelerations[which]

	def locate(self, which, station) -> vec3:
		''' location in the ancestor of a point fixed on a constrained body '''
		return self.transforms[which] * vec3(station)

	def express(self, which, vector) -> vec3:
		''' a vector fixed on a constrained body, expressed in the ancestor '''
		return mat3(self.transforms[which]) * vec3(vector)

	def point_velocity(self, which, station) -> vec3:
		V = self.velocity(which)
		return V.linear + cross(V.angular, self.express(which, station))

	def point_acceleration(self, which, station) -> vec3:
		V = self.velocity(which)
		A = self.acceleration(which)
		r = self.express(which, station)
		return A.linear + cross(A.angular, r) + cross(V.angular, cross(V.angular, r))

	def get_q(self, which) -> np.ndarray:
		return self.q[self._qslots[which]]

	def get_u(self, which) -> np.ndarray:
		if self.u is None:
			raise StageViolation('speeds are not available at this stage')
		return self.u[self._uslots[which]]

	def get_udot(self, which) -> np.ndarray:
		if self.udot is None:
			raise StageViolation('speeds derivatives are not available at this stage')
		return self.udot[self._uslots[which]]


class ConstraintForces:
	''' Accumulator of the forces applied by a constraint

		Attributes:
			bodies:      list of `SpatialVec` (torque about the body origin, force) per constrained body, expressed in the ancestor frame
			mobilities:  array of generalized forces on the constrained mobilities
	'''
	def __init__(self, kinematics, nbodies, nmobilities):
		self.kinematics = kinematics
		self.bodies = [SpatialVec()  for i in range(nbodies)]
		self.mobilities = np.zeros(nmobilities)

	def apply_body_force(self, which, force: SpatialVec):
		self.bodies[which] = self.bodies[which] + force

	def apply_torque(self, which, torque):
		self.bodies[which] = self.bodies[which] + SpatialVec(torque, O)

	def apply_point_force(self, which, station, force):
		''' apply a force expressed in the ancestor, on a point fixed on a constrained body '''
		force = vec3(force)
		r = self.kinematics.express(which, station)
		self.bodies[which] = self.bodies[which] + SpatialVec(cross(r, force), force)

	def apply_mobility_force(self, which, k, force):
		''' apply a generalized force on the k-th speed of a constrained body '''
		slot = self.kinematics._uslots[which]
		if not 0 <= k < slot.stop - slot.start:
			raise IndexError('mobility {} out of range for constrained body {}'.format(k, which))
		self.mobilities[slot.start + k] += force


class Constraint:
	''' Base class for constraints

		Parameters:
			bodies:    the constrained bodies, distinct
			ancestor:  the body whose frame is used for the equations, by default the nearest common ancestor of the constrained bodies

		Attributes:
			default_counts:  default numbers of equations `(mp, mv, ma)`
			all_bodies:      when True, every body but the ground is constrained
			matter:          the `Matter` it has been added to
			index:           its index in the matter
	'''
	default_counts = (0, 0, 0)

	def __init__(self, bodies=(), ancestor=None):
		self.bodies = list(bodies)
		self.ancestor = ancestor
		self.all_bodies = False
		self.matter = None
		self.index = None

	def __repr__(self):
		return '<{} {}>'.format(self.__class__.__name__, self.index)

	# structure

	def _placement(self):
		if self.matter is None:
			raise ValueError('{} is not part of a matter'.format(self))
		return self.matter._structure().constraints[self.index]

	def _place(self, state, stage, what=None):
		if self.matter is None:
			raise ValueError('{} is not part of a matter'.format(self))
		return self.matter._check(state, stage, what).constraints[self.index]

	def _key(self, name):
		return (('constraint', self.index), name)

	def _counts(self, state) -> tuple:
		return state.model[self._key('counts')]

	def _enabled(self, state) -> bool:
		return state.model.get(self._key('enabled'), True)

	def get_num_constrained_bodies(self) -> int:
		return len(self._placement().bodies)

	def get_constrained_mobilized_body(self, which):
		return self._placement().bodies[which]

	def get_ancestor_mobilized_body(self):
		return self._placement().ancestor

	def get_subtree(self):
		return self._placement().subtree

	def get_num_constrained_mobilities(self, state, which=None) -> int:
		''' number of speeds of all the constrained bodies, or of the given one. The ancestor mobilities are not counted '''
		place = self._place(state, Stage.Model)
		if which is None:
			return len(place.umap)
		slot = place.uslots[which]
		return slot.stop - slot.start

	def get_constrained_mobility_index(self, state, which, k) -> int:
		''' index in the constrained mobilities of the k-th speed of a constrained body '''
		place = self._place(state, Stage.Model)
		slot = place.uslots[which]
		if not 0 <= k < slot.stop - slot.start:
			raise IndexError('mobility {} out of range for constrained body {}'.format(k, which))
		return slot.start + k

	def get_participating_mobilities(self, state) -> np.ndarray:
		''' global indices in `u` of the columns of the constraint matrices '''
		return self._place(state, Stage.Model).subtree.mobilities.copy()

	def get_participating_coordinates(self, state) -> np.ndarray:
		''' global indices in `q` of the columns of `calc_position_constraint_matrix_pq_inverse` '''
		return self._place(state, Stage.Model).subtree.coordinates.copy()

	def get_default_num_constraint_equations(self) -> tuple:
		''' numbers of equations `(mp, mv, ma)` given to new states '''
		return tuple(self.default_counts)

	def get_num_constraint_equations(self, state) -> tuple:
		''' numbers of equations `(mp, mv, ma)` for this state '''
		self._place(state, Stage.Model)
		return tuple(self._counts(state))

	def is_enabled(self, state) -> bool:
		self._place(state, Stage.Model)
		return self._enabled(state)

	def set_enabled(self, state, enabled):
		''' enable or disable the constraint, its equations keep their place in the multipliers '''
		self._place(state, Stage.Topology)
		state.model[self._key('enabled')] = bool(enabled)
		state.invalidate(Stage.Position)

	def invalidate_topology_cache(self):
		''' notify a structural change of this constraint, the states of its matter must be realized again '''
		if self.matter is not None:
			self.matter.invalidate_topology()

	def _set_default(self, name, value):
		setattr(self, name, value)
		self.invalidate_topology_cache()
		return self

	# realization

	def _evaluate(self, callback, kin, size) -> np.ndarray:
		result = flatten_state(callback(kin))
		if result.size != size:
			raise DimensionMismatch('{}.{} returned {} values instead of {}'.format(
				type(self).__name__, getattr(callback, '__name__', callback), result.size, size))
		return result

	def _position_errors(self, state, kin) -> np.ndarray:
		mp, mv, ma = self._counts(state)
		if not mp or not self._enabled(state):
			return np.zeros(mp)
		return self._evaluate(self.position_errors, kin, mp)

	def _velocity_errors(self, state, kin) -> np.ndarray:
		mp, mv, ma = self._counts(state)
		if not self._enabled(state):
			return np.zeros(mp+mv)
		return np.concatenate([
			self._evaluate(self.position_dot_errors, kin, mp)  if mp else np.zeros(0),
			self._evaluate(self.velocity_errors, kin, mv)  if mv else np.zeros(0),
			])

	def _acceleration_errors(self, state, kin) -> np.ndarray:
		mp, mv, ma = self._counts(state)
		if not self._enabled(state):
			return np.zeros(mp+mv+ma)
		return np.concatenate([
			self._evaluate(self.position_dotdot_errors, kin, mp)  if mp else np.zeros(0),
			self._evaluate(self.velocity_dot_errors, kin, mv)  if mv else np.zeros(0),
			self._evaluate(self.acceleration_errors, kin, ma)  if ma else np.zeros(0),
			])

	def _forces(self, state, place, kin, multipliers) -> '(list, np.ndarray)':
		mp, mv, ma = self._counts(state)
		forces = ConstraintForces(kin, len(place.bodies), len(place.umap))
		if self._enabled(state):
			if mp:	self.apply_position_forces(kin, multipliers[:mp], forces)
			if mv:	self.apply_velocity_forces(kin, multipliers[mp:mp+mv], forces)
			if ma:	self.apply_acceleration_forces(kin, multipliers[mp+mv:], forces)
		return forces.bodies, forces.mobilities

	def _realize_position(self, state, kin):
		place = self.matter._topology.constraints[self.index]
		state.cache(self._key('perr'), Stage.Position, self._position_errors(state, ConstrainedKinematics(place, kin)))

	def _realize_velocity(self, state, kin):
		place = self.matter._topology.constraints[self.index]
		state.cache(self._key('verr'), Stage.Velocity, self._velocity_errors(state, ConstrainedKinematics(place, kin)))

	def _realize_acceleration(self, state, kin, multipliers):
		place = self.matter._topology.constraints[self.index]
		observed = ConstrainedKinematics(place, kin)
		state.cache(self._key('aerr'), Stage.Acceleration, self._acceleration_errors(state, observed))
		state.cache(self._key('forces'), Stage.Acceleration, self._forces(state, place, observed, multipliers))

	# errors

	def get_position_errors(self, state) -> np.ndarray:
		''' the `mp` holonomic errors '''
		self._place(state, Stage.Position)
		return state.cached(self._key('perr')).copy()

	def get_velocity_errors(self, state) -> np.ndarray:
		''' the `mp+mv` velocity errors: time derivatives of the holonomic errors, then the nonholonomic errors '''
		self._place(state, Stage.Velocity)
		return state.cached(self._key('verr')).copy()

	def get_acceleration_errors(self, state) -> np.ndarray:
		''' the `mp+mv+ma` acceleration errors: second derivatives of the holonomic errors, derivatives of the nonholonomic errors, then the acceleration-only errors '''
		self._place(state, Stage.Acceleration)
		return state.cached(self._key('aerr')).copy()

	def get_multipliers(self, state) -> np.ndarray:
		''' the part of the state multipliers belonging to this constraint '''
		self._place(state, Stage.Instance)
		return state.get_multipliers()[self.matter.get_multiplier_segment(state, self)]

	def get_constraint_forces(self, state) -> '(list, np.ndarray)':
		''' forces applied for the state multipliers, see `calc_constraint_forces_from_multipliers` '''
		self._place(state, Stage.Acceleration)
		bodies, mobilities = state.cached(self._key('forces'))
		return list(bodies), mobilities.copy()

	def _reaction(self, state, which) -> SpatialVec:
		''' force applied on a constrained body for the state multipliers, about its origin and expressed in ground '''
		place = self._place(state, Stage.Acceleration)
		bodies, mobilities = self.get_constraint_forces(state)
		return bodies[which].transform(mat3(self.matter._read(state, 'X_GB')[place.ancestor.index]))

	def calc_position_error_from_q(self, state, q) -> np.ndarray:
		''' holonomic errors for the given coordinates, the state is not modified '''
		self._place(state, Stage.Instance)
		trial = state.clone()
		trial.set_q(q)
		self.matter.realize(trial, Stage.Position)
		return self.get_position_errors(trial)

	def calc_velocity_error_from_u(self, state, u) -> np.ndarray:
		''' velocity errors for the given speeds, at the state coordinates '''
		place = self._place(state, Stage.Position)
		kin = ConstrainedKinematics(place, self.matter.kinematics(state, u=u))
		return self._velocity_errors(state, kin)

	def calc_acceleration_error_from_udot(self, state, udot) -> np.ndarray:
		''' acceleration errors for the given speeds derivatives, at the state coordinates and speeds '''
		place = self._place(state, Stage.Dynamics)
		kin = ConstrainedKinematics(place, self.matter.kinematics(state, udot=udot))
		return self._acceleration_errors(state, kin)

	# matrices

	def _matrix(self, state, rows, callback, trial) -> np.ndarray:
		''' partial derivatives of errors affine in the speeds (or their derivatives), by evaluation on unit vectors '''
		place = self.matter._topology.constraints[self.index]
		columns = place.subtree.mobilities
		result = np.zeros((rows, len(columns)))
		if not rows or not self._enabled(state):
			return result
		e = np.zeros(self.matter._topology.nu)
		base = self._evaluate(callback, ConstrainedKinematics(place, trial(e)), rows)
		for j, g in enumerate(columns):
			e[g] = 1
			result[:,j] = self._evaluate(callback, ConstrainedKinematics(place, trial(e)), rows) - base
			e[g] = 0
		return result

	def calc_position_constraint_matrix_p(self, state) -> np.ndarray:
		''' `P = d(perr_dot)/du`, of shape `(mp, participating mobilities)` '''
		self._place(state, Stage.Position)
		mp, mv, ma = self._counts(state)
		return self._matrix(state, mp, self.position_dot_errors, lambda u: self.matter.kinematics(state, u=u))

	def calc_position_constraint_matrix_pt(self, state) -> np.ndarray:
		return self.calc_position_constraint_matrix_p(state).T

	def calc_position_constraint_matrix_pq_inverse(self, state) -> np.ndarray:
		''' `P @ inverse(Q) = d(perr)/dq`, of shape `(mp, participating coordinates)` '''
		place = self._place(state, Stage.Position)
		P = self.calc_position_constraint_matrix_p(state)
		if not place.subtree.bodies:
			return np.zeros((P.shape[0], 0))
		q = state.get_q()
		topo = self.matter._topology
		Q = scipy.linalg.block_diag(*[
				body.mobilizer.calc_q_matrix(q[topo.qstart[body.index]:topo.qstart[body.index]+body.mobilizer.nq])
				for body in place.subtree.bodies])
		return P @ scipy.linalg.pinv(Q)

	def calc_velocity_constraint_matrix_v(self, state) -> np.ndarray:
		''' `V = d(verr)/du`, of shape `(mv, participating mobilities)` '''
		self._place(state, Stage.Position)
		mp, mv, ma = self._counts(state)
		return self._matrix(state, mv, self.velocity_errors, lambda u: self.matter.kinematics(state, u=u))

	def calc_velocity_constraint_matrix_vt(self, state) -> np.ndarray:
		return self.calc_velocity_constraint_matrix_v(state).T

	def calc_acceleration_constraint_matrix_a(self, state) -> np.ndarray:
		''' `A = d(aerr)/d(udot)`, of shape `(ma, participating mobilities)` '''
		self._place(state, Stage.Dynamics)
		mp, mv, ma = self._counts(state)
		return self._matrix(state, ma, self.acceleration_errors, lambda udot: self.matter.kinematics(state, udot=udot))

	def calc_acceleration_constraint_matrix_at(self, state) -> np.ndarray:
		return self.calc_acceleration_constraint_matrix_a(state).T

	def calc_constraint_jacobian(self, state) -> np.ndarray:
		''' the stacked matrices `[P; V; A]`, rows in the multipliers order '''
		self._place(state, Stage.Position)
		mp, mv, ma = self._counts(state)
		place = self.matter._topology.constraints[self.index]
		return np.concatenate([
			self.calc_position_constraint_matrix_p(state),
			self.calc_velocity_constraint_matrix_v(state),
			self.calc_acceleration_constraint_matrix_a(state)  if ma else np.zeros((0, len(place.subtree.mobilities))),
			])

	# forces

	def calc_constraint_forces_from_multipliers(self, state, multipliers) -> '(list, np.ndarray)':
		''' forces applied by this constraint for the given multipliers

			Returns:
				a list of `SpatialVec` per constrained body, expressed in the ancestor frame at the body origin, and the array of forces on the constrained mobilities
		'''
		place = self._place(state, Stage.Position)
		counts = self._counts(state)
		multipliers = np.asarray(multipliers, float).ravel()
		if multipliers.size != sum(counts):
			raise DimensionMismatch('{} has {} equations, not {}'.format(self, sum(counts), multipliers.size))
		return self._forces(state, place, ConstrainedKinematics(place, self.matter.kinematics(state)), multipliers)

	def calc_mobility_forces_from_multipliers(self, state, multipliers) -> np.ndarray:
		''' generalized forces on the participating mobilities for the given multipliers, equal to `jacobian.T @ multipliers` '''
		place = self._place(state, Stage.Position)
		bodies, mobilities = self.calc_constraint_forces_from_multipliers(state, multipliers)
		R_GA = mat3(self.matter._read(state, 'X_GB')[place.ancestor.index])
		result = np.zeros(self.matter._topology.nu)
		self.matter._transpose_jacobian(state,
			[(body, force.transform(R_GA))  for body, force in zip(place.bodies, bodies)],
			result, stop=place.ancestor)
		result[place.umap] += mobilities
		return result[place.subtree.mobilities]

	# callbacks

	def position_errors(self, kin):
		''' holonomic errors, `mp` values '''
		raise NotImplementedError('{} declares holonomic equations but does not implement position_errors'.format(type(self).__name__))

	def position_dot_errors(self, kin):
		''' first time derivative of the holonomic errors '''
		raise NotImplementedError('{} declares holonomic equations but does not implement position_dot_errors'.format(type(self).__name__))

	def position_dotdot_errors(self, kin):
		''' second time derivative of the holonomic errors '''
		raise NotImplementedError('{} declares holonomic equations but does not implement position_dotdot_errors'.format(type(self).__name__))

	def apply_position_forces(self, kin, multipliers, forces: ConstraintForces):
		''' accumulate in `forces` the forces of the holonomic equations for the given multipliers '''
		raise NotImplementedError('{} declares holonomic equations but does not implement apply_position_forces'.format(type(self).__name__))

	def velocity_errors(self, kin):
		''' nonholonomic errors, `mv` values '''
		raise NotImplementedError('{} declares nonholonomic equations but does not implement velocity_errors'.format(type(self).__name__))

	def velocity_dot_errors(self, kin):
		raise NotImplementedError('{} declares nonholonomic equations but does not implement velocity_dot_errors'.format(type(self).__name__))

	def apply_velocity_forces(self, kin, multipliers, forces: ConstraintForces):
		raise NotImplementedError('{} declares nonholonomic equations but does not implement apply_velocity_forces'.format(type(self).__name__))

	def acceleration_errors(self, kin):
		''' acceleration-only errors, `ma` values '''
		raise NotImplementedError('{} declares acceleration equations but does not implement acceleration_errors'.format(type(self).__name__))

	def apply_acceleration_forces(self, kin, multipliers, forces: ConstraintForces):
		raise NotImplementedError('{} declares acceleration equations but does not implement apply_acceleration_forces'.format(type(self).__name__))


# derivatives of the dot product of two unit vectors fixed on two bodies

def _angle_dot(b, f, wb, wf) -> float:
	return dot(wb - wf, cross(b, f))

def _angle_dotdot(b, f, wb, wf, bb, bf) -> float:
	return dot(bb - bf, cross(b, f)) + dot(wb - wf, cross(cross(wb, b), f) + cross(b, cross(wf, f)))


class Rod(Constraint):
	''' constant distance between a point on each body

		the error is `(distance**2 - length**2) / 2`
	'''
	default_counts = (1, 0, 0)

	def __init__(self, body1, point1, body2, point2, length, ancestor=None):
		super().__init__([body1, body2], ancestor)
		self.points = (vec3(point1), vec3(point2))
		self.length = float(length)

	def set_default_point_on_body1(self, point):
		return self._set_default('points', (vec3(point), self.points[1]))

	def set_default_point_on_body2(self, point):
		return self._set_default('points', (self.points[0], vec3(point)))

	def get_default_point_on_body1(self) -> vec3:
		return vec3(self.points[0])

	def get_default_point_on_body2(self) -> vec3:
		return vec3(self.points[1])

	def set_default_rod_length(self, length):
		return self._set_default('length', float(length))

	def get_default_rod_length(self) -> float:
		return self.length

	def _separation(self, kin):
		return kin.locate(1, self.points[1]) - kin.locate(0, self.points[0])

	def position_errors(self, kin):
		r = self._separation(kin)
		return [0.5 * (dot(r, r) - self.length**2)]

	def position_dot_errors(self, kin):
		v = kin.point_velocity(1, self.points[1]) - kin.point_velocity(0, self.points[0])
		return [dot(self._separation(kin), v)]

	def position_dotdot_errors(self, kin):
		v = kin.point_velocity(1, self.points[1]) - kin.point_velocity(0, self.points[0])
		a = kin.point_acceleration(1, self.points[1]) - kin.point_acceleration(0, self.points[0])
		return [dot(v, v) + dot(self._separation(kin), a)]

	def apply_position_forces(self, kin, multipliers, forces):
		f = float(multipliers[0]) * self._separation(kin)
		forces.apply_point_force(1, self.points[1], f)
		forces.apply_point_force(0, self.points[0], -f)

	def get_rod_tension(self, state) -> float:
		''' tension of the rod for the state multipliers, positive when it pulls the points together '''
		place = self._place(state, Stage.Acceleration)
		r = self._separation(ConstrainedKinematics(place, self.matter.kinematics(state)))
		if r == vec3(0):
			return 0.
		bodies, mobilities = self.get_constraint_forces(state)
		return -dot(bodies[1].linear, normalize(r))


class Ball(Constraint):
	''' coincident points on two bodies '''
	default_counts = (3, 0, 0)

	def __init__(self, body1, point1, body2, point2, ancestor=None):
		super().__init__([body1, body2], ancestor)
		self.points = (vec3(point1), vec3(point2))

	def set_default_point_on_body1(self, point):
		return self._set_default('points', (vec3(point), self.points[1]))

	def set_default_point_on_body2(self, point):
		return self._set_default('points', (self.points[0], vec3(point)))

	def get_default_point_on_body1(self) -> vec3:
		return vec3(self.points[0])

	def get_default_point_on_body2(self) -> vec3:
		return vec3(self.points[1])

	def position_errors(self, kin):
		return kin.locate(1, self.points[1]) - kin.locate(0, self.points[0])

	def position_dot_errors(self, kin):
		return kin.point_velocity(1, self.points[1]) - kin.point_velocity(0, self.points[0])

	def position_dotdot_errors(self, kin):
		return kin.point_acceleration(1, self.points[1]) - kin.point_acceleration(0, self.points[0])

	def apply_position_forces(self, kin, multipliers, forces):
		f = tovec(multipliers)
		forces.apply_point_force(1, self.points[1], f)
		forces.apply_point_force(0, self.points[0], -f)

	def get_ball_reaction_force_on_body1(self, state) -> vec3:
		''' force applied by the ball on body 1, expressed in ground '''
		return self._reaction(state, 0).linear

	def get_ball_reaction_force_on_body2(self, state) -> vec3:
		return self._reaction(state, 1).linear


class PointInPlane(Constraint):
	''' a point on the follower body stays in a plane fixed on the plane body

		the plane is given by its normal and its height along the normal, in the plane body frame
	'''
	default_counts = (1, 0, 0)

	def __init__(self, plane_body, normal, height, follower, point, ancestor=None):
		super().__init__([plane_body, follower], ancestor)
		self.normal = normalize(vec3(normal))
		self.height = float(height)
		self.point = vec3(point)

	def set_default_plane_normal(self, normal):
		return self._set_default('normal', normalize(vec3(normal)))

	def set_default_plane_height(self, height):
		return self._set_default('height', float(height))

	def set_default_follower_point(self, point):
		return self._set_default('point', vec3(point))

	def get_default_plane_normal(self) -> vec3:
		return vec3(self.normal)

	def get_default_plane_height(self) -> float:
		return self.height

	def get_default_follower_point(self) -> vec3:
		return vec3(self.point)

	def position_errors(self, kin):
		n = kin.express(0, self.normal)
		return [dot(kin.locate(1, self.point) - kin.origin(0), n) - self.height]

	def position_dot_errors(self, kin):
		n = kin.express(0, self.normal)
		w = kin.velocity(0).angular
		r = kin.locate(1, self.point) - kin.origin(0)
		v = kin.point_velocity(1, self.point) - kin.velocity(0).linear
		return [dot(v, n) + dot(r, cross(w, n))]

	def position_dotdot_errors(self, kin):
		n = kin.express(0, self.normal)
		w = kin.velocity(0).angular
		b = kin.acceleration(0).angular
		r = kin.locate(1, self.point) - kin.origin(0)
		v = kin.point_velocity(1, self.point) - kin.velocity(0).linear
		a = kin.point_acceleration(1, self.point) - kin.acceleration(0).linear
		return [dot(a, n) + 2.*dot(v, cross(w, n)) + dot(r, cross(b, n) + cross(w, cross(w, n)))]

	def apply_position_forces(self, kin, multipliers, forces):
		n = kin.express(0, self.normal)
		f = float(multipliers[0]) * n
		r = kin.locate(1, self.point) - kin.origin(0)
		forces.apply_point_force(1, self.point, f)
		forces.apply_body_force(0, SpatialVec(-cross(r, f), -f))

	def get_force_on_follower_point(self, state) -> vec3:
		''' force applied on the follower point, expressed in ground '''
		return self._reaction(state, 1).linear


class ConstantAngle(Constraint):
	''' constant angle between an axis fixed on the base body and an axis fixed on the follower body

		the error is the difference of cosines
	'''
	default_counts = (1, 0, 0)

	def __init__(self, base, base_axis, follower, follower_axis, angle=pi/2, ancestor=None):
		super().__init__([base, follower], ancestor)
		self.axes = (normalize(vec3(base_axis)), normalize(vec3(follower_axis)))
		self.angle = float(angle)

	def set_default_base_axis(self, axis):
		return self._set_default('axes', (normalize(vec3(axis)), self.axes[1]))

	def set_default_follower_axis(self, axis):
		return self._set_default('axes', (self.axes[0], normalize(vec3(axis))))

	def set_default_angle(self, angle):
		return self._set_default('angle', float(angle))

	def get_default_base_axis(self) -> vec3:
		return vec3(self.axes[0])

	def get_default_follower_axis(self) -> vec3:
		return vec3(self.axes[1])

	def get_default_angle(self) -> float:
		return self.angle

	def _axes(self, kin):
		return kin.express(0, self.axes[0]), kin.express(1, self.axes[1])

	def position_errors(self, kin):
		b, f = self._axes(kin)
		return [dot(b, f) - cos(self.angle)]

	def position_dot_errors(self, kin):
		b, f = self._axes(kin)
		return [_angle_dot(b, f, kin.velocity(0).angular, kin.velocity(1).angular)]

	def position_dotdot_errors(self, kin):
		b, f = self._axes(kin)
		return [_angle_dotdot(b, f,
					kin.velocity(0).angular, kin.velocity(1).angular,
					kin.acceleration(0).angular, kin.acceleration(1).angular)]

	def apply_position_forces(self, kin, multipliers, forces):
		b, f = self._axes(kin)
		torque = float(multipliers[0]) * cross(b, f)
		forces.apply_torque(0, torque)
		forces.apply_torque(1, -torque)

	def get_torque_on_follower_body(self, state) -> vec3:
		''' torque applied on the follower body, expressed in ground '''
		return self._reaction(state, 1).angular


class ConstantOrientation(Constraint):
	''' constant relative orientation of two bodies

		the frames `base_frame` and `follower_frame` (rotations fixed on each body) are kept aligned, by three perpendicularity equations between their axes
	'''
	default_counts = (3, 0, 0)
	# pairs of (base axis, follower axis) that must stay perpendicular
	pairs = ((1, 0), (2, 1), (0, 2))

	def __init__(self, base, base_frame, follower, follower_frame, ancestor=None):
		super().__init__([base, follower], ancestor)
		self.frames = (mat3(base_frame), mat3(follower_frame))

	def set_default_base_rotation(self, rotation):
		return self._set_default('frames', (mat3(rotation), self.frames[1]))

	def set_default_follower_rotation(self, rotation):
		return self._set_default('frames', (self.frames[0], mat3(rotation)))

	def get_default_base_rotation(self) -> mat3:
		return mat3(self.frames[0])

	def get_default_follower_rotation(self) -> mat3:
		return mat3(self.frames[1])

	def _axes(self, kin):
		B = kin.rotation(0) * self.frames[0]
		F = kin.rotation(1) * self.frames[1]
		return [(B[i], F[j])  for i, j in self.pairs]

	def position_errors(self, kin):
		return [dot(b, f)  for b, f in self._axes(kin)]

	def position_dot_errors(self, kin):
		wb, wf = kin.velocity(0).angular, kin.velocity(1).angular
		return [_angle_dot(b, f, wb, wf)  for b, f in self._axes(kin)]

	def position_dotdot_errors(self, kin):
		wb, wf = kin.velocity(0).angular, kin.velocity(1).angular
		bb, bf = kin.acceleration(0).angular, kin.acceleration(1).angular
		return [_angle_dotdot(b, f, wb, wf, bb, bf)  for b, f in self._axes(kin)]

	def apply_position_forces(self, kin, multipliers, forces):
		torque = vec3(0)
		for (b, f), l in zip(self._axes(kin), multipliers):
			torque += float(l) * cross(b, f)
		forces.apply_torque(0, torque)
		forces.apply_torque(1, -torque)

	def get_torque_on_follower_body(self, state) -> vec3:
		''' torque applied on the follower body, expressed in ground '''
		return self._reaction(state, 1).angular


class Weld(Constraint):
	''' two frames fixed on two bodies stay coincident

		the first three equations keep the orientations aligned like `ConstantOrientation`, the last three keep the origins coincident like `Ball`
	'''
	default_counts = (6, 0, 0)

	def __init__(self, body1, frame1, body2, frame2, ancestor=None):
		super().__init__([body1, body2], ancestor)
		frame1, frame2 = mat4(frame1), mat4(frame2)
		self.orientation = ConstantOrientation(body1, mat3(frame1), body2, mat3(frame2))
		self.location = Ball(body1, translation(frame1), body2, translation(frame2))

	def set_default_frame_on_body1(self, frame):
		frame = mat4(frame)
		self.orientation.frames = (mat3(frame), self.orientation.frames[1])
		self.location.points = (translation(frame), self.location.points[1])
		self.invalidate_topology_cache()
		return self

	def set_default_frame_on_body2(self, frame):
		frame = mat4(frame)
		self.orientation.frames = (self.orientation.frames[0], mat3(frame))
		self.location.points = (self.location.points[0], translation(frame))
		self.invalidate_topology_cache()
		return self

	def get_default_frame_on_body1(self) -> mat4:
		return transform(self.orientation.frames[0], self.location.points[0])

	def get_default_frame_on_body2(self) -> mat4:
		return transform(self.orientation.frames[1], self.location.points[1])

	def position_errors(self, kin):
		return [self.orientation.position_errors(kin), self.location.position_errors(kin)]

	def position_dot_errors(self, kin):
		return [self.orientation.position_dot_errors(kin), self.location.position_dot_errors(kin)]

	def position_dotdot_errors(self, kin):
		return [self.orientation.position_dotdot_errors(kin), self.location.position_dotdot_errors(kin)]

	def apply_position_forces(self, kin, multipliers, forces):
		self.orientation.apply_position_forces(kin, multipliers[:3], forces)
		self.location.apply_position_forces(kin, multipliers[3:], forces)

	def get_weld_reaction_on_body1(self, state) -> SpatialVec:
		''' torque and force applied by the weld on body 1, about its origin and expressed in ground '''
		return self._reaction(state, 0)

	def get_weld_reaction_on_body2(self, state) -> SpatialVec:
		return self._reaction(state, 1)


class ConstantSpeed(Constraint):
	''' one generalized speed of a body is prescribed

		the ancestor is the body parent so the constrained mobilities are exactly the body ones
	'''
	default_counts = (0, 1, 0)

	def __init__(self, body, speed, which=0):
		super().__init__([body], body.parent)
		self.speed = float(speed)
		self.which = which

	def set_default_speed(self, speed):
		return self._set_default('speed', float(speed))

	def get_default_speed(self) -> float:
		return self.speed

	def velocity_errors(self, kin):
		return [kin.get_u(0)[self.which] - self.speed]

	def velocity_dot_errors(self, kin):
		return [kin.get_udot(0)[self.which]]

	def apply_velocity_forces(self, kin, multipliers, forces):
		forces.apply_mobility_force(0, self.which, float(multipliers[0]))


class ConstantAcceleration(Constraint):
	''' one generalized speed derivative of a body is prescribed '''
	default_counts = (0, 0, 1)

	def __init__(self, body, acceleration, which=0):
		super().__init__([body], body.parent)
		self.acceleration = float(acceleration)
		self.which = which

	def set_default_acceleration(self, acceleration):
		return self._set_default('acceleration', float(acceleration))

	def get_default_acceleration(self) -> float:
		return self.acceleration

	def acceleration_errors(self, kin):
		return [kin.get_udot(0)[self.which] - self.acceleration]

	def apply_acceleration_forces(self, kin, multipliers, forces):
		forces.apply_mobility_force(0, self.which, float(multipliers[0]))


class Custom(Constraint):
	''' constraint defined by user callbacks

		The callbacks are either methods overriden in a subclass, or functions given as keyword arguments, taking the same arguments as the methods (without `self`)

			>>> Custom(mp=1, bodies=[arm],
			...     position_errors = lambda kin: [kin.origin(0).z],
			...     position_dot_errors = lambda kin: [kin.velocity(0).linear.z],
			...     ...)

		The number of equations can be changed per state with `change_num_constraint_equations`. Any other structural change (constrained bodies, ancestor) must be followed by `invalidate_topology_cache`.
	'''
	callbacks = ('position_errors', 'position_dot_errors', 'position_dotdot_errors', 'apply_position_forces',
				'velocity_errors', 'velocity_dot_errors', 'apply_velocity_forces',
				'acceleration_errors', 'apply_acceleration_forces')

	def __init__(self, mp=0, mv=0, ma=0, bodies=(), ancestor=None, **callbacks):
		super().__init__(bodies, ancestor)
		self.default_counts = (mp, mv, ma)
		for name, callback in callbacks.items():
			if name not in self.callbacks:
				raise TypeError('unknown constraint callback {!r}'.format(name))
			setattr(self, name, callback)

	def add_constrained_body(self, body) -> int:
		''' add a body to the constrained ones, and return its index in the constraint '''
		self.bodies.append(body)
		self.invalidate_topology_cache()
		return len(self.bodies)-1

	def set_all_bodies_constrained(self, enable=True):
		''' constrain every body of the matter but the ground, the explicitly constrained bodies are ignored '''
		self.all_bodies = enable
		self.invalidate_topology_cache()

	def set_default_num_constraint_equations(self, mp, mv, ma):
		self.default_counts = (mp, mv, ma)
		self.invalidate_topology_cache()

	def change_num_constraint_equations(self, state, mp, mv, ma):
		''' change the number of equations for the given state, it must not be realized beyond the Model stage '''
		if state.stage > Stage.Model:
			raise StageViolation('the number of equations can only be changed up to the Model stage, the state is realized to {}'.format(state.stage.name))
		self._place(state, Stage.Topology)
		state.set_model_variable(self._key('counts'), (mp, mv, ma))

