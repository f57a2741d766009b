# This file is part of pymobilize,  distributed under license LGPL v3

''' This module defines `Matter`, the container of a multibody system: its tree of bodies and its constraints.

	The matter holds the structure of the system, and computes the state dependent quantities stage by stage in `Matter.realize`:

		>>> matter = Matter()
		>>> arm = matter.add_body(matter.ground, Pin(), outboard=vec3(-1,0,0))
		>>> state = matter.default_state()
		>>> arm.set_q(state, [pi/2])
		>>> matter.realize(state, Stage.Position)
		>>> arm.get_body_origin_location(state)
		dvec3( 0, 1, 0 )

	Any structural change (adding a body or a constraint, changing a default frame) gives a new `Matter.generation`, unique among all the matters of the process. The states realized for a previous generation can no longer be read, and are restarted from scratch by the next `realize`.
'''

import itertools
import numpy as np

from .mathutils import *
from .state import Stage, State, StageViolation, DimensionMismatch
from .body import MobilizedBody
from .mobilizers import Ground

__all__ = ['Matter', 'Subtree', 'TopologyError', 'Kinematics']

# generations are shared by all matters, so a state cannot be read by a matter it was not realized for
_generations = itertools.count(1)


class TopologyError(Exception):
	''' raised when the structure of a matter is not a valid tree, or a constraint doesn't fit in it '''
	pass


class Subtree:
	''' The part of the body tree between an ancestor body and some terminal bodies

		Attributes:
			ancestor:      the root body of the subtree, its own mobilities are not part of the subtree
			terminals:     the bodies whose paths to the ancestor form the subtree
			bodies:        all the bodies on these paths, ancestor excluded, in traversal order
			mobilities:    the global indices in `u` of the speeds of `bodies`
			coordinates:   the global indices in `q` of the coordinates of `bodies`
	'''
	__slots__ = ('ancestor', 'terminals', 'bodies', 'mobilities', 'coordinates')

	def __init__(self, ancestor, terminals, bodies, mobilities, coordinates):
		self.ancestor = ancestor
		self.terminals = terminals
		self.bodies = bodies
		self.mobilities = mobilities
		self.coordinates = coordinates

	def __contains__(self, body):
		return body in self.bodies

	def __repr__(self):
		return '<Subtree from {} to {}>'.format(self.ancestor, self.terminals)


class Topology:
	''' structural data computed at the Topology stage, shared by all states of the same generation '''
	__slots__ = ('generation', 'order', 'level', 'qstart', 'ustart', 'nq', 'nu', 'constraints')


class Placement:
	''' structural data of a constraint in the body tree

		Attributes:
			bodies:       the constrained bodies
			ancestor:     the ancestor body, constraint quantities are expressed in its frame
			subtree:      the `Subtree` from the ancestor to the constrained bodies
			umap, qmap:   global indices of the constrained mobilities and coordinates
			uslots, qslots:   slice of each constrained body in the constrained mobilities and coordinates
	'''
	__slots__ = ('bodies', 'ancestor', 'subtree', 'umap', 'qmap', 'uslots', 'qslots')


class Kinematics:
	''' ground frame kinematics of every body, for one set of speeds and accelerations

		`velocities` and `accelerations` are None when not available.
	'''
	__slots__ = ('time', 'transforms', 'velocities', 'accelerations', 'q', 'u', 'udot')

	def __init__(self, time, transforms, velocities, accelerations, q, u, udot):
		self.time = time
		self.transforms = transforms
		self.velocities = velocities
		self.accelerations = accelerations
		self.q = q
		self.u = u
		self.udot = udot


class Matter:
	''' A tree of mobilized bodies with auxiliary constraints

		Attributes:
			bodies:       list of `MobilizedBody`, the ground is always the first
			constraints:  list of `Constraint` in insertion order
			generation:   identifier of the current structure, changed at each structural change
	'''
	def __init__(self):
		self.bodies = []
		self.constraints = []
		self.generation = next(_generations)
		self._topology = None
		self.add(MobilizedBody(None, Ground(), name='ground'))

	def __repr__(self):
		return '<Matter with {} bodies, {} constraints>'.format(len(self.bodies), len(self.constraints))

	@property
	def ground(self) -> MobilizedBody:
		return self.bodies[0]

	def add(self, body) -> MobilizedBody:
		''' insert a body in the tree and return it, its parent is expected to be in the tree at realization '''
		if body.matter is not None:
			raise ValueError('{} already belongs to a matter'.format(body))
		body.matter = self
		body.index = len(self.bodies)
		self.bodies.append(body)
		self.invalidate_topology()
		return body

	def add_body(self, parent, mobilizer, inboard=None, outboard=None, mass=None, name=None) -> MobilizedBody:
		''' create a `MobilizedBody` and insert it '''
		return self.add(MobilizedBody(parent, mobilizer, inboard, outboard, mass, name))

	def add_constraint(self, constraint):
		''' insert a constraint and return it '''
		if constraint.matter is not None:
			raise ValueError('{} already belongs to a matter'.format(constraint))
		constraint.matter = self
		constraint.index = len(self.constraints)
		self.constraints.append(constraint)
		self.invalidate_topology()
		return constraint

	def invalidate_topology(self):
		''' notify a structural change, every state will restart from the Topology stage '''
		self.generation = next(_generations)
		self._topology = None

	def get_num_bodies(self) -> int:
		return len(self.bodies)

	def get_num_constraints(self) -> int:
		return len(self.constraints)

	def get_num_q(self, state) -> int:
		return self._check(state, Stage.Topology).nq

	def get_num_u(self, state) -> int:
		return self._check(state, Stage.Topology).nu

	def get_num_multipliers(self, state) -> int:
		self._check(state, Stage.Instance)
		return state.cached(('matter', 'layout'))[-1]

	def get_multiplier_segment(self, state, constraint) -> slice:
		''' slice of the given constraint equations in the global multipliers vector '''
		self._check(state, Stage.Instance)
		layout = state.cached(('matter', 'layout'))
		return slice(layout[constraint.index], layout[constraint.index+1])

	def get_qdot(self, state) -> np.ndarray:
		''' time derivative of all the coordinates, available at Velocity stage '''
		return self._read(state, 'qdot').copy()

	def get_qdotdot(self, state) -> np.ndarray:
		''' second time derivative of all the coordinates, available at Acceleration stage '''
		return self._read(state, 'qdotdot').copy()

	def default_state(self) -> State:
		''' a new state with default values, realized to the Model stage '''
		return self.realize(State(), Stage.Model)

	# structure

	def _structure(self) -> Topology:
		''' current topology, built on demand '''
		if self._topology is None:
			self._topology = self._build_topology()
		return self._topology

	def _check(self, state, stage, what=None) -> Topology:
		''' topology of the state, after checking it is up to date and realized to the given stage '''
		if state.generation != self.generation or self._topology is None:
			raise StageViolation('the state was not realized for the current topology of {}'.format(self))
		state.require(stage, what)
		return self._topology

	def _read(self, state, name):
		''' cached matter quantity '''
		if state.generation != self.generation or self._topology is None:
			raise StageViolation('the state was not realized for the current topology of {}'.format(self))
		return state.cached(('matter', name))

	def _build_topology(self) -> Topology:
		bodies = self.bodies
		if bodies[0].parent is not None or not isinstance(bodies[0].mobilizer, Ground):
			raise TopologyError('the first body must be the ground')
		children = [[]  for body in bodies]
		for body in bodies[1:]:
			if body.parent is None or isinstance(body.mobilizer, Ground):
				raise TopologyError('{} is a second ground, only the first body can have no parent'.format(body))
			if body.parent.matter is not self or body.parent.index is None or bodies[body.parent.index] is not body.parent:
				raise TopologyError('the parent of {} is not part of this matter'.format(body))
			children[body.parent.index].append(body)

		# depth first traversal from the ground, bodies not reached are in a cycle
		order = []
		level = [0] * len(bodies)
		stack = [bodies[0]]
		while stack:
			body = stack.pop()
			order.append(body)
			for child in reversed(children[body.index]):
				level[child.index] = level[body.index] + 1
				stack.append(child)
		if len(order) != len(bodies):
			reached = set(body.index  for body in order)
			raise TopologyError('bodies {} form a cycle'.format([body  for body in bodies  if body.index not in reached]))

		topo = Topology()
		topo.generation = self.generation
		topo.order = order
		topo.level = level
		topo.qstart = [0] * len(bodies)
		topo.ustart = [0] * len(bodies)
		nq = nu = 0
		for body in order:
			topo.qstart[body.index] = nq
			topo.ustart[body.index] = nu
			nq += body.mobilizer.nq
			nu += body.mobilizer.nu
		topo.nq, topo.nu = nq, nu
		topo.constraints = [self._place(topo, constraint)  for constraint in self.constraints]
		return topo

	def _path(self, body, ancestor=None) -> list:
		''' bodies from `ancestor` (excluded) to `body` (included), or None if `ancestor` doesn't dominate `body` '''
		path = []
		while body is not ancestor:
			if body is None:
				return None
			path.append(body)
			body = body.parent
		path.reverse()
		return path

	def _subtree(self, topo, ancestor, bodies) -> Subtree:
		position = {body.index: i  for i, body in enumerate(topo.order)}
		members = {}
		for body in bodies:
			path = self._path(body, ancestor)
			if path is None:
				raise TopologyError('{} is not an ancestor of {}'.format(ancestor, body))
			for b in path:
				members[b.index] = b
		members = sorted(members.values(), key=lambda b: position[b.index])
		mobilities = np.array([topo.ustart[b.index] + k  for b in members  for k in range(b.mobilizer.nu)], dtype=int)
		coordinates = np.array([topo.qstart[b.index] + k  for b in members  for k in range(b.mobilizer.nq)], dtype=int)
		return Subtree(ancestor, list(bodies), members, mobilities, coordinates)

	def subtree(self, ancestor, bodies) -> Subtree:
		''' the subtree from `ancestor` to the given bodies '''
		return self._subtree(self._structure(), ancestor, bodies)

	def common_ancestor(self, bodies) -> MobilizedBody:
		''' the deepest body dominating all the given bodies, the ground if none is given '''
		common = None
		for body in bodies:
			path = [self.ground] + self._path(body)
			if common is None:
				common = path
			else:
				n = 0
				while n < min(len(common), len(path)) and common[n] is path[n]:
					n += 1
				common = common[:n]
		return common[-1] if common else self.ground

	def _place(self, topo, constraint) -> Placement:
		if constraint.all_bodies:
			bodies = [body  for body in topo.order[1:]]
		else:
			bodies = list(constraint.bodies)
		for body in bodies:
			if body.matter is not self:
				raise TopologyError('{} constrains {} which is not part of this matter'.format(constraint, body))
		if len(set(id(body) for body in bodies)) != len(bodies):
			raise TopologyError('{} constrains the same body twice'.format(constraint))

		if constraint.ancestor is not None:
			ancestor = constraint.ancestor
			if ancestor.matter is not self:
				raise TopologyError('the ancestor of {} is not part of this matter'.format(constraint))
		elif constraint.all_bodies:
			ancestor = self.ground
		else:
			ancestor = self.common_ancestor(bodies)

		place = Placement()
		place.bodies = bodies
		place.ancestor = ancestor
		place.subtree = self._subtree(topo, ancestor, bodies)
		place.uslots, place.qslots = [], []
		umap, qmap = [], []
		for body in bodies:
			nu = 0 if body is ancestor else body.mobilizer.nu
			nq = 0 if body is ancestor else body.mobilizer.nq
			place.uslots.append(slice(len(umap), len(umap)+nu))
			place.qslots.append(slice(len(qmap), len(qmap)+nq))
			umap.extend(range(topo.ustart[body.index], topo.ustart[body.index]+nu))
			qmap.extend(range(topo.qstart[body.index], topo.qstart[body.index]+nq))
		place.umap = np.array(umap, dtype=int)
		place.qmap = np.array(qmap, dtype=int)
		return place

	# realization

	def realize(self, state, stage=Stage.Acceleration) -> State:
		''' compute all the quantities of the given stage and the stages before, returns the state

			The stages are realized one after the other from the current stage of the state. If a computation fails, the state is brought back to the stage it had before the call, and the exception is propagated.
		'''
		stage = Stage(stage)
		if state.stage > Stage.Empty and (state.generation != self.generation or self._topology is None):
			state.invalidate(Stage.Topology)
		initial = state.stage
		try:
			while state.stage < stage:
				step = state.stage.next()
				getattr(self, '_realize_'+step.name.lower())(state)
				state.advance(step)
		except Exception:
			if initial < Stage.Acceleration:
				state.invalidate(initial.next())
			raise
		return state

	def _realize_topology(self, state):
		topo = self._structure()
		if state.generation != self.generation or state._q.size != topo.nq or state._u.size != topo.nu:
			state.allocate(topo.nq, topo.nu)
			for body in topo.order:
				start = topo.qstart[body.index]
				state._q[start:start+body.mobilizer.nq] = body.mobilizer.get_default()
			state.generation = self.generation

	def _realize_model(self, state):
		for constraint in self.constraints:
			key = ('constraint', constraint.index)
			state.model.setdefault((key, 'enabled'), True)
			counts = state.model.setdefault((key, 'counts'), tuple(constraint.default_counts))
			valid = len(counts) == 3
			for n in counts:
				if not isinstance(n, (int, np.integer)) or n < 0:
					valid = False
			if not valid:
				raise DimensionMismatch('invalid equation counts {} for {}'.format(counts, constraint))

	def _realize_instance(self, state):
		for body in self.bodies:
			key = ('body', body.index)
			state.instance.setdefault((key, 'inboard'), mat4(body.inboard))
			state.instance.setdefault((key, 'outboard'), mat4(body.outboard))
		layout = [0]
		for constraint in self.constraints:
			layout.append(layout[-1] + sum(state.model[(('constraint', constraint.index), 'counts')]))
		state.cache(('matter', 'layout'), Stage.Instance, layout)
		state.resize_multipliers(layout[-1])

	def _realize_time(self, state):
		pass

	def _realize_position(self, state):
		topo = self._topology
		q = state._q
		n = len(self.bodies)
		X_FM = [mat4()] * n
		X_GF = [mat4()] * n
		X_GM = [mat4()] * n
		X_GB = [mat4()] * n
		H = [np.zeros((6,0))] * n
		for body in topo.order[1:]:
			i, p = body.index, body.parent.index
			mobilizer = body.mobilizer
			qb = q[topo.qstart[i]:topo.qstart[i]+mobilizer.nq]
			X_PF = state.instance[(('body', i), 'inboard')]
			X_BM = state.instance[(('body', i), 'outboard')]
			X_FM[i] = mobilizer.calc_transform(qb)
			X_GF[i] = X_GB[p] * X_PF
			X_GM[i] = X_GF[i] * X_FM[i]
			X_GB[i] = X_GM[i] * affineInverse(X_BM)
			H[i] = mobilizer.calc_motion_map(qb)
		for name, value in (('X_FM', X_FM), ('X_GF', X_GF), ('X_GM', X_GM), ('X_GB', X_GB), ('H_FM', H)):
			state.cache(('matter', name), Stage.Position, value)

		kin = Kinematics(state.time, X_GB, None, None, q, None, None)
		for constraint in self.constraints:
			constraint._realize_position(state, kin)

	def _realize_velocity(self, state):
		topo = self._topology
		q, u = state._q, state._u
		V_FM, V_GB = self._velocities(state, u)
		qdot = np.zeros(topo.nq)
		for body in topo.order[1:]:
			i = body.index
			qs = slice(topo.qstart[i], topo.qstart[i]+body.mobilizer.nq)
			qdot[qs] = body.mobilizer.calc_qdot(q[qs], u[topo.ustart[i]:topo.ustart[i]+body.mobilizer.nu])
		state.cache(('matter', 'V_FM'), Stage.Velocity, V_FM)
		state.cache(('matter', 'V_GB'), Stage.Velocity, V_GB)
		state.cache(('matter', 'qdot'), Stage.Velocity, qdot)

		kin = Kinematics(state.time, self._read(state, 'X_GB'), V_GB, None, q, u, None)
		for constraint in self.constraints:
			constraint._realize_velocity(state, kin)

	def _realize_dynamics(self, state):
		topo = self._topology
		q, u = state._q, state._u
		bias = [np.zeros(6)] * len(self.bodies)
		for body in topo.order[1:]:
			i = body.index
			qb = q[topo.qstart[i]:topo.qstart[i]+body.mobilizer.nq]
			ub = u[topo.ustart[i]:topo.ustart[i]+body.mobilizer.nu]
			bias[i] = body.mobilizer.calc_motion_map_dot(qb, ub) @ ub
		state.cache(('matter', 'HDot_u'), Stage.Dynamics, bias)
		A_FM, A_GB = self._accelerations(state, np.zeros(topo.nu), bias)
		state.cache(('matter', 'A_GB_bias'), Stage.Dynamics, A_GB)

	def _realize_acceleration(self, state):
		topo = self._topology
		q, u, udot = state._q, state._u, state._udot
		A_FM, A_GB = self._accelerations(state, udot)
		qdotdot = np.zeros(topo.nq)
		for body in topo.order[1:]:
			i = body.index
			qs = slice(topo.qstart[i], topo.qstart[i]+body.mobilizer.nq)
			us = slice(topo.ustart[i], topo.ustart[i]+body.mobilizer.nu)
			qdotdot[qs] = body.mobilizer.calc_qdotdot(q[qs], u[us], udot[us])
		state.cache(('matter', 'A_FM'), Stage.Acceleration, A_FM)
		state.cache(('matter', 'A_GB'), Stage.Acceleration, A_GB)
		state.cache(('matter', 'qdotdot'), Stage.Acceleration, qdotdot)

		kin = Kinematics(state.time, self._read(state, 'X_GB'), self._read(state, 'V_GB'), A_GB, q, u, udot)
		layout = state.cached(('matter', 'layout'))
		for constraint in self.constraints:
			constraint._realize_acceleration(state, kin, state._multipliers[layout[constraint.index]:layout[constraint.index+1]])

	# recursions

	def _velocities(self, state, u) -> '(list, list)':
		''' mobilizer and ground velocities of all bodies for the given speeds, the Position stage must be realized '''
		topo = self._topology
		X_GB = self._read(state, 'X_GB')
		X_GF = self._read(state, 'X_GF')
		X_GM = self._read(state, 'X_GM')
		H = self._read(state, 'H_FM')
		n = len(self.bodies)
		V_FM = [SpatialVec()] * n
		V_GB = [SpatialVec()] * n
		for body in topo.order[1:]:
			i, p = body.index, body.parent.index
			start = topo.ustart[i]
			V_FM[i] = SpatialVec.fromarray(H[i] @ u[start:start+body.mobilizer.nu])
			R_GF = mat3(X_GF[i])
			w_GP, v_GP = V_GB[p]
			p_GP, p_GM, p_GB = translation(X_GB[p]), translation(X_GM[i]), translation(X_GB[i])
			w_GB = w_GP + R_GF*V_FM[i].angular
			v_GM = v_GP + cross(w_GP, p_GM - p_GP) + R_GF*V_FM[i].linear
			V_GB[i] = SpatialVec(w_GB, v_GM + cross(w_GB, p_GB - p_GM))
		return V_FM, V_GB

	def _accelerations(self, state, udot, bias=None) -> '(list, list)':
		''' mobilizer and ground accelerations of all bodies for the current speeds and the given speeds derivatives

			`bias` is the per-body product `HDot_FM @ u`, read from the Dynamics stage when not given
		'''
		topo = self._topology
		X_GB = self._read(state, 'X_GB')
		X_GF = self._read(state, 'X_GF')
		X_GM = self._read(state, 'X_GM')
		H = self._read(state, 'H_FM')
		V_FM = self._read(state, 'V_FM')
		V_GB = self._read(state, 'V_GB')
		if bias is None:
			bias = self._read(state, 'HDot_u')
		n = len(self.bodies)
		A_FM = [SpatialVec()] * n
		A_GB = [SpatialVec()] * n
		for body in topo.order[1:]:
			i, p = body.index, body.parent.index
			start = topo.ustart[i]
			A_FM[i] = SpatialVec.fromarray(H[i] @ udot[start:start+body.mobilizer.nu] + bias[i])
			R_GF = mat3(X_GF[i])
			w_FM_G = R_GF*V_FM[i].angular
			v_FM_G = R_GF*V_FM[i].linear
			b_GP, a_GP = A_GB[p]
			w_GP = V_GB[p].angular
			w_GB = V_GB[i].angular
			p_GP, p_GM, p_GB = translation(X_GB[p]), translation(X_GM[i]), translation(X_GB[i])
			r = p_GM - p_GP
			s = p_GB - p_GM
			b_GB = b_GP + R_GF*A_FM[i].angular + cross(w_GP, w_FM_G)
			a_GM = (a_GP + cross(b_GP, r) + cross(w_GP, cross(w_GP, r))
					+ 2.*cross(w_GP, v_FM_G) + R_GF*A_FM[i].linear)
			A_GB[i] = SpatialVec(b_GB, a_GM + cross(b_GB, s) + cross(w_GB, cross(w_GB, s)))
		return A_FM, A_GB

	def kinematics(self, state, u=None, udot=None) -> Kinematics:
		''' ground frame kinematics of all bodies

			With `u` given, the velocities are computed for these speeds instead of the state ones, and no acceleration is given. With `udot` given, the accelerations are computed for these speeds derivatives and the state speeds, which requires the Dynamics stage. Otherwise the cached quantities are returned as far as the state is realized.
		'''
		topo = self._check(state, Stage.Position, 'kinematics')
		X_GB = self._read(state, 'X_GB')
		if u is not None:
			u = np.asarray(u, float)
			if u.shape != (topo.nu,):
				raise DimensionMismatch('u must have {} components'.format(topo.nu))
			return Kinematics(state.time, X_GB, self._velocities(state, u)[1], None, state._q, u, None)
		if udot is not None:
			state.require(Stage.Dynamics, 'kinematics for given udot')
			udot = np.asarray(udot, float)
			if udot.shape != (topo.nu,):
				raise DimensionMismatch('udot must have {} components'.format(topo.nu))
			return Kinematics(state.time, X_GB, self._read(state, 'V_GB'), self._accelerations(state, udot)[1], state._q, state._u, udot)
		return Kinematics(state.time, X_GB,
				self._read(state, 'V_GB') if state.stage >= Stage.Velocity else None,
				self._read(state, 'A_GB') if state.stage >= Stage.Acceleration else None,
				state._q,
				state._u if state.stage >= Stage.Velocity else None,
				state._udot if state.stage >= Stage.Acceleration else None,
				)

	# forces

	def _transpose_jacobian(self, state, body_forces, result, stop=None):
		''' accumulate in `result` the generalized forces equivalent to the given ground frame forces

			`body_forces` is an iterable of `(body, SpatialVec)` with forces applied at the body origins. Only the mobilities between `stop` (excluded) and each body are accounted.
		'''
		topo = self._topology
		X_GB = self._read(state, 'X_GB')
		X_GF = self._read(state, 'X_GF')
		X_GM = self._read(state, 'X_GM')
		H = self._read(state, 'H_FM')
		for body, force in body_forces:
			if force is None:	continue
			p_GB = translation(X_GB[body.index])
			k = body
			while k is not stop and k.parent is not None:
				R_GF = mat3(X_GF[k.index])
				lever = p_GB - translation(X_GM[k.index])
				start = topo.ustart[k.index]
				for j in range(k.mobilizer.nu):
					w = R_GF * tovec(H[k.index][:,j], 0)
					v = R_GF * tovec(H[k.index][:,j], 3) + cross(w, lever)
					result[start+j] += dot(force.angular, w) + dot(force.linear, v)
				k = k.parent
		return result

	def calc_generalized_forces(self, state, body_forces, mobility_forces=None) -> np.ndarray:
		''' generalized forces equivalent to the given forces (multiplication by the transposed system jacobian)

			Parameters:
				body_forces:      list of `SpatialVec` (torque about the body origin, force) expressed in ground, one per body, None items are ignored
				mobility_forces:  array of generalized forces added as is
		'''
		topo = self._check(state, Stage.Position, 'calc_generalized_forces')
		if len(body_forces) != len(self.bodies):
			raise DimensionMismatch('expected {} body forces, not {}'.format(len(self.bodies), len(body_forces)))
		result = np.zeros(topo.nu)
		if mobility_forces is not None:
			mobility_forces = np.asarray(mobility_forces, float)
			if mobility_forces.shape != (topo.nu,):
				raise DimensionMismatch('expected {} mobility forces, not {}'.format(topo.nu, mobility_forces.size))
			result += mobility_forces
		return self._transpose_jacobian(state, zip(self.bodies, body_forces), result)

	def calc_constraint_forces_from_multipliers(self, state, multipliers) -> '(list, np.ndarray)':
		''' forces applied by all the enabled constraints for the given global multipliers

			Returns:
				a list of `SpatialVec` per body, expressed in ground at the body origins, and the array of mobility forces
		'''
		topo = self._check(state, Stage.Position, 'calc_constraint_forces_from_multipliers')
		layout = state.cached(('matter', 'layout'))
		multipliers = np.asarray(multipliers, float).ravel()
		if multipliers.size != layout[-1]:
			raise DimensionMismatch('expected {} multipliers, not {}'.format(layout[-1], multipliers.size))
		X_GB = self._read(state, 'X_GB')
		body_forces = [SpatialVec()  for body in self.bodies]
		mobility_forces = np.zeros(topo.nu)
		for constraint in self.constraints:
			if not constraint.is_enabled(state):
				continue
			forces, mobility = constraint.calc_constraint_forces_from_multipliers(state,
									multipliers[layout[constraint.index]:layout[constraint.index+1]])
			place = topo.constraints[constraint.index]
			o_A = translation(X_GB[place.ancestor.index])
			reaction = SpatialVec()
			R_GA = mat3(X_GB[place.ancestor.index])
			for body, force in zip(place.bodies, forces):
				force = force.transform(R_GA)
				body_forces[body.index] = body_forces[body.index] + force
				reaction = reaction + shift_force(force, o_A - translation(X_GB[body.index]))
			# the ancestor balances what the constraint applies, even when it is violated
			body_forces[place.ancestor.index] = body_forces[place.ancestor.index] - reaction
			mobility_forces[place.umap] += mobility
		return body_forces, mobility_forces
