# This file is part of pymobilize,  distributed under license LGPL v3

''' This module defines `MobilizedBody`, a rigid body attached to its parent by a mobilizer, and its kinematic operators.

	Bodies hold no computed value: everything is read from the `State` given to each method, after `Matter.realize` has computed it. The operators come in three tiers:

	- responses: the cached quantities themselves, `get_body_transform`, `get_body_velocity`, ...
	- basic operators: few arithmetic operations on responses of one body, `locate_body_point_on_ground`, `calc_body_fixed_point_velocity_in_ground`, ...
	- high level operators: relative kinematics between two arbitrary bodies, `calc_body_spatial_velocity_in_body`, `calc_point_to_point_distance`, ...

	Naming conventions used in the code:

	- `X_AB` is the transformation matrix of frame B measured from frame A (it maps B coordinates to A coordinates)
	- `R_AB` is the rotation part of `X_AB`
	- `V_AB`, `A_AB` are spatial velocity and acceleration of frame B in frame A
	- G is the ground frame, F and M are the mobilizer frames on the parent and the body
'''

import numpy as np

from .mathutils import *
from .state import Stage, DimensionMismatch

__all__ = ['MobilizedBody', 'relative_velocity', 'relative_acceleration']


def _frame(frame) -> mat4:
	''' transformation matrix from a mat4, a translation vector or None '''
	if frame is None:				return mat4()
	if isinstance(frame, mat4):		return mat4(frame)
	if isinstance(frame, (mat3, quat)):		return mat4(frame)
	return translate(vec3(frame))

def relative_velocity(X_GA, V_GA, X_GB, V_GB) -> SpatialVec:
	''' spatial velocity of frame B in frame A, expressed in A, from their ground frame kinematics '''
	w_AB_G = V_GB.angular - V_GA.angular
	p_AB_G = translation(X_GB) - translation(X_GA)
	p_AB_G_dot = V_GB.linear - V_GA.linear		# derivative taken in G
	v_AB_G = p_AB_G_dot - cross(V_GA.angular, p_AB_G)	# derivative taken in A
	return SpatialVec(w_AB_G, v_AB_G).transform(transpose(mat3(X_GA)))

def relative_acceleration(X_GA, V_GA, A_GA, X_GB, V_GB, A_GB) -> SpatialVec:
	''' spatial acceleration of frame B in frame A, expressed in A, from their ground frame kinematics '''
	w_GA, w_GB = V_GA.angular, V_GB.angular
	b_GA, b_GB = A_GA.angular, A_GB.angular
	p_AB_G = translation(X_GB) - translation(X_GA)
	p_AB_G_dot = V_GB.linear - V_GA.linear
	p_AB_G_dotdot = A_GB.linear - A_GA.linear

	w_AB_G = w_GB - w_GA
	v_AB_G = p_AB_G_dot - cross(w_GA, p_AB_G)
	w_AB_G_dot = b_GB - b_GA
	v_AB_G_dot = p_AB_G_dotdot - (cross(b_GA, p_AB_G) + cross(w_GA, p_AB_G_dot))
	# derivatives taken in A instead of G
	b_AB_G = w_AB_G_dot - cross(w_GA, w_AB_G)
	a_AB_G = v_AB_G_dot - cross(w_GA, v_AB_G)
	return SpatialVec(b_AB_G, a_AB_G).transform(transpose(mat3(X_GA)))


class MobilizedBody:
	''' A rigid body and the mobilizer connecting it to its parent

		Parameters:
			parent:     the parent `MobilizedBody`, None only for the ground
			mobilizer:  the `Mobilizer` giving the motion of this body relative to its parent
			inboard:    frame F fixed on the parent (`X_PF`), as a mat4 or a translation vector
			outboard:   frame M fixed on this body (`X_BM`), as a mat4 or a translation vector
			mass:       `MassProperties` of the body, in its own frame, infinite for the ground
			name:       optional name for display

		A body becomes usable once added to a `Matter`, which gives it its `index`. The body object is a view on the matter structure: the same object is returned each time the matter is asked for it, and modifying it modifies the matter.
	'''
	def __init__(self, parent, mobilizer, inboard=None, outboard=None, mass=None, name=None):
		self.parent = parent
		self.mobilizer = mobilizer
		self.inboard = _frame(inboard)
		self.outboard = _frame(outboard)
		if mass is None:
			mass = MassProperties.infinite() if parent is None else MassProperties()
		self.mass = mass
		self.name = name
		self.matter = None
		self.index = None

	def __repr__(self):
		if self.name:
			return '<{} {} {!r}>'.format(self.__class__.__name__, self.index, self.name)
		return '<{} {} {}>'.format(self.__class__.__name__, self.index, self.mobilizer)

	def is_ground(self) -> bool:
		return self.index == 0

	def is_same_mobilized_body(self, other) -> bool:
		return self is other

	def _require(self, state, stage, what=None):
		if self.matter is None:
			raise ValueError('{} is not part of a matter'.format(self))
		return self.matter._check(state, stage, what)

	def _read(self, state, name):
		if self.matter is None:
			raise ValueError('{} is not part of a matter'.format(self))
		return self.matter._read(state, name)[self.index]

	# TOPOLOGY

	def set_default_inboard_frame(self, X_PF) -> 'MobilizedBody':
		''' change the default frame F on the parent, this is a topological change '''
		self.inboard = _frame(X_PF)
		if self.matter:	self.matter.invalidate_topology()
		return self

	def set_default_outboard_frame(self, X_BM) -> 'MobilizedBody':
		''' change the default frame M on this body, this is a topological change '''
		self.outboard = _frame(X_BM)
		if self.matter:	self.matter.invalidate_topology()
		return self

	def get_default_inboard_frame(self) -> mat4:
		return mat4(self.inboard)

	def get_default_outboard_frame(self) -> mat4:
		return mat4(self.outboard)

	def get_level_in_multibody_tree(self) -> int:
		''' number of mobilizers between ground and this body '''
		return self.matter._structure().level[self.index]

	# GENERALIZED COORDINATES

	def get_num_q(self, state) -> int:
		self._require(state, Stage.Topology)
		return self.mobilizer.nq

	def get_num_u(self, state) -> int:
		self._require(state, Stage.Topology)
		return self.mobilizer.nu

	def _qslice(self, state):
		topo = self._require(state, Stage.Topology)
		start = topo.qstart[self.index]
		return slice(start, start+self.mobilizer.nq)

	def _uslice(self, state):
		topo = self._require(state, Stage.Topology)
		start = topo.ustart[self.index]
		return slice(start, start+self.mobilizer.nu)

	def get_q(self, state) -> np.ndarray:
		return state.get_q()[self._qslice(state)]

	def set_q(self, state, q):
		''' set the generalized coordinates of this mobilizer, invalidates the Position stage '''
		s = self._qslice(state)
		q = np.asarray(q, float).ravel()
		if q.size != s.stop - s.start:
			raise DimensionMismatch('{} has {} coordinates, not {}'.format(self, s.stop-s.start, q.size))
		state.set_q_slice(s.start, q)

	def get_u(self, state) -> np.ndarray:
		return state.get_u()[self._uslice(state)]

	def set_u(self, state, u):
		''' set the generalized speeds of this mobilizer, invalidates the Velocity stage '''
		s = self._uslice(state)
		u = np.asarray(u, float).ravel()
		if u.size != s.stop - s.start:
			raise DimensionMismatch('{} has {} speeds, not {}'.format(self, s.stop-s.start, u.size))
		state.set_u_slice(s.start, u)

	def get_one_q(self, state, which) -> float:
		return float(self.get_q(state)[which])

	def get_one_u(self, state, which) -> float:
		return float(self.get_u(state)[which])

	def set_one_q(self, state, which, value):
		''' set one coordinate of this mobilizer, invalidates the Position stage '''
		s = self._qslice(state)
		if not 0 <= which < s.stop - s.start:
			raise IndexError('coordinate {} out of range for {}'.format(which, self))
		state.set_q_slice(s.start + which, [value])

	def set_one_u(self, state, which, value):
		''' set one speed of this mobilizer, invalidates the Velocity stage '''
		s = self._uslice(state)
		if not 0 <= which < s.stop - s.start:
			raise IndexError('speed {} out of range for {}'.format(which, self))
		state.set_u_slice(s.start + which, [value])

	def get_udot(self, state) -> np.ndarray:
		return state.get_udot()[self._uslice(state)]

	def get_qdot(self, state) -> np.ndarray:
		''' time derivative of the coordinates, available at Velocity stage '''
		return self.matter._read(state, 'qdot')[self._qslice(state)]

	def get_qdotdot(self, state) -> np.ndarray:
		''' second time derivative of the coordinates, available at Acceleration stage '''
		return self.matter._read(state, 'qdotdot')[self._qslice(state)]

	def get_one_udot(self, state, which) -> float:
		return float(self.get_udot(state)[which])

	def get_one_qdot(self, state, which) -> float:
		return float(self.get_qdot(state)[which])

	def get_one_qdotdot(self, state, which) -> float:
		return float(self.get_qdotdot(state)[which])

	def get_my_part_q(self, state, qlike) -> np.ndarray:
		''' the part of this mobilizer in an array the size of q '''
		qlike = np.asarray(qlike)
		if qlike.shape[0] != self.matter.get_num_q(state):
			raise DimensionMismatch('expected an array of {} items'.format(self.matter.get_num_q(state)))
		return qlike[self._qslice(state)]

	def get_my_part_u(self, state, ulike) -> np.ndarray:
		''' the part of this mobilizer in an array the size of u '''
		ulike = np.asarray(ulike)
		if ulike.shape[0] != self.matter.get_num_u(state):
			raise DimensionMismatch('expected an array of {} items'.format(self.matter.get_num_u(state)))
		return ulike[self._uslice(state)]

	# fitting coordinates to a desired motion, all relative to the mobilizer frames

	def _current_transform(self, state) -> mat4:
		return self.mobilizer.calc_transform(self.get_q(state))

	def _current_velocity(self, state) -> SpatialVec:
		q = self.get_q(state)
		return SpatialVec.fromarray(self.mobilizer.calc_motion_map(q) @ self.get_u(state))

	def set_q_to_fit_transform(self, state, X_FM):
		''' set the coordinates whose cross-mobilizer transform is the closest to `X_FM`, starting from the current ones '''
		self.set_q(state, self.mobilizer.inverse(mat4(X_FM), self.get_q(state)))

	def set_q_to_fit_rotation(self, state, R_FM):
		''' fit the orientation of M in F, keeping the current translation as far as the mobilizer allows '''
		current = self._current_transform(state)
		self.set_q_to_fit_transform(state, transform(mat3(R_FM), translation(current)))

	def set_q_to_fit_translation(self, state, p_FM):
		''' fit the origin of M in F, keeping the current orientation as far as the mobilizer allows '''
		current = self._current_transform(state)
		self.set_q_to_fit_transform(state, transform(mat3(current), vec3(p_FM)))

	def set_u_to_fit_velocity(self, state, V_FM: SpatialVec):
		''' set the speeds whose cross-mobilizer velocity is the closest to `V_FM`, in the least squares sense '''
		self.set_u(state, self.mobilizer.inverse_velocity(self.get_q(state), V_FM))

	def set_u_to_fit_angular_velocity(self, state, w_FM):
		''' fit the angular velocity of M in F, keeping the current origin velocity as far as the mobilizer allows '''
		current = self._current_velocity(state)
		self.set_u_to_fit_velocity(state, SpatialVec(w_FM, current.linear))

	def set_u_to_fit_linear_velocity(self, state, v_FM):
		''' fit the velocity of the M origin in F, keeping the current angular velocity as far as the mobilizer allows '''
		current = self._current_velocity(state)
		self.set_u_to_fit_velocity(state, SpatialVec(current.angular, v_FM))

	# INSTANCE

	def get_inboard_frame(self, state) -> mat4:
		''' frame F on the parent body, `X_PF` '''
		self._require(state, Stage.Instance)
		return mat4(state.instance[(('body', self.index), 'inboard')])

	def get_outboard_frame(self, state) -> mat4:
		''' frame M on this body, `X_BM` '''
		self._require(state, Stage.Instance)
		return mat4(state.instance[(('body', self.index), 'outboard')])

	def set_inboard_frame(self, state, X_PF):
		''' change the frame F for this state only, invalidates the Instance stage '''
		self._require(state, Stage.Model)
		state.set_instance_variable((('body', self.index), 'inboard'), _frame(X_PF))

	def set_outboard_frame(self, state, X_BM):
		''' change the frame M for this state only, invalidates the Instance stage '''
		self._require(state, Stage.Model)
		state.set_instance_variable((('body', self.index), 'outboard'), _frame(X_BM))

	# POSITION responses

	def get_body_transform(self, state) -> mat4:
		''' `X_GB` placement of this body frame in ground '''
		return mat4(self._read(state, 'X_GB'))

	def get_body_rotation(self, state) -> mat3:
		''' `R_GB` orientation of this body in ground '''
		return mat3(self._read(state, 'X_GB'))

	def get_body_origin_location(self, state) -> vec3:
		return translation(self._read(state, 'X_GB'))

	def get_mobilizer_transform(self, state) -> mat4:
		''' `X_FM` cross-mobilizer transform '''
		return mat4(self._read(state, 'X_FM'))

	# VELOCITY responses

	def get_body_velocity(self, state) -> SpatialVec:
		''' `V_GB` spatial velocity of this body in ground, at its origin and expressed in ground '''
		V = self._read(state, 'V_GB')
		return SpatialVec(V.angular, V.linear)

	def get_body_angular_velocity(self, state) -> vec3:
		return vec3(self._read(state, 'V_GB').angular)

	def get_body_origin_velocity(self, state) -> vec3:
		return vec3(self._read(state, 'V_GB').linear)

	def get_mobilizer_velocity(self, state) -> SpatialVec:
		''' `V_FM` cross-mobilizer velocity, expressed in F '''
		V = self._read(state, 'V_FM')
		return SpatialVec(V.angular, V.linear)

	# ACCELERATION responses

	def get_body_acceleration(self, state) -> SpatialVec:
		''' `A_GB` spatial acceleration of this body in ground, at its origin and expressed in ground '''
		A = self._read(state, 'A_GB')
		return SpatialVec(A.angular, A.linear)

	def get_body_angular_acceleration(self, state) -> vec3:
		return vec3(self._read(state, 'A_GB').angular)

	def get_body_origin_acceleration(self, state) -> vec3:
		return vec3(self._read(state, 'A_GB').linear)

	def get_mobilizer_acceleration(self, state) -> SpatialVec:
		''' `A_FM` cross-mobilizer acceleration, expressed in F '''
		A = self._read(state, 'A_FM')
		return SpatialVec(A.angular, A.linear)

	# basic operators

	def locate_body_point_on_ground(self, state, location_on_b) -> vec3:
		return self._read(state, 'X_GB') * vec3(location_on_b)

	def locate_ground_point_on_body(self, state, location_on_g) -> vec3:
		return affineInverse(self._read(state, 'X_GB')) * vec3(location_on_g)

	def locate_body_point_on_body(self, state, location_on_b, to_body_a) -> vec3:
		''' location in body A of a point fixed on this body '''
		return to_body_a.locate_ground_point_on_body(state, self.locate_body_point_on_ground(state, location_on_b))

	def locate_body_mass_center_on_ground(self, state) -> vec3:
		return self.locate_body_point_on_ground(state, self.mass.center)

	def express_body_vector_in_ground(self, state, vector_in_b) -> vec3:
		return mat3(self._read(state, 'X_GB')) * vec3(vector_in_b)

	def express_ground_vector_in_body(self, state, vector_in_g) -> vec3:
		return transpose(mat3(self._read(state, 'X_GB'))) * vec3(vector_in_g)

	def express_body_vector_in_body(self, state, vector_in_b, in_body_a) -> vec3:
		return in_body_a.express_ground_vector_in_body(state, self.express_body_vector_in_ground(state, vector_in_b))

	def calc_body_fixed_point_velocity_in_ground(self, state, station_on_b) -> vec3:
		''' velocity in ground of a point fixed on this body '''
		V = self._read(state, 'V_GB')
		r = self.express_body_vector_in_ground(state, station_on_b)	# 15 flops
		return V.linear + cross(V.angular, r)	# 12 flops

	def calc_body_fixed_point_location_and_velocity_in_ground(self, state, location_on_b) -> '(vec3, vec3)':
		X_GB = self._read(state, 'X_GB')
		V = self._read(state, 'V_GB')
		r = mat3(X_GB) * vec3(location_on_b)
		return translation(X_GB) + r, V.linear + cross(V.angular, r)

	def calc_body_fixed_point_acceleration_in_ground(self, state, station_on_b) -> vec3:
		''' acceleration in ground of a point fixed on this body '''
		V = self._read(state, 'V_GB')
		A = self._read(state, 'A_GB')
		w = V.angular
		r = self.express_body_vector_in_ground(state, station_on_b)	# 15 flops
		return A.linear + cross(A.angular, r) + cross(w, cross(w, r))	# 33 flops

	def calc_body_fixed_point_location_velocity_and_acceleration_in_ground(self, state, location_on_b) -> '(vec3, vec3, vec3)':
		X_GB = self._read(state, 'X_GB')
		V = self._read(state, 'V_GB')
		A = self._read(state, 'A_GB')
		r = mat3(X_GB) * vec3(location_on_b)
		wxr = cross(V.angular, r)	# whipping velocity
		return (
			translation(X_GB) + r,
			V.linear + wxr,
			A.linear + cross(A.angular, r) + cross(V.angular, wxr),
			)

	def calc_station_velocity_in_body(self, state, station_on_b, body_a) -> vec3:
		''' velocity of a point fixed on this body, as seen from body A and expressed in A '''
		location_on_a = self.calc_body_point_location_in_body(state, station_on_b, body_a)
		velocity_in_ground = self.calc_body_fixed_point_velocity_in_ground(state, station_on_b)
		w = body_a.get_body_angular_velocity(state)
		v = body_a.get_body_origin_velocity(state)
		return body_a.express_ground_vector_in_body(state,
				velocity_in_ground - v - cross(w, body_a.express_body_vector_in_ground(state, location_on_a)))

	# mass operators

	def express_body_mass_properties_in_ground(self, state) -> MassProperties:
		''' mass properties about the body origin, expressed in ground '''
		return self.mass.transform(self.get_body_rotation(state))

	def calc_body_momentum_about_body_origin_in_ground(self, state) -> SpatialVec:
		''' momentum of the body about its origin, null for the ground '''
		V = self.get_body_velocity(state)
		if self.is_ground():
			return SpatialVec()
		M = self.express_body_mass_properties_in_ground(state).spatial_matrix()
		return SpatialVec.fromarray(M @ V.array())

	def calc_body_momentum_about_body_mass_center_in_ground(self, state) -> SpatialVec:
		w = self.get_body_angular_velocity(state)
		if self.is_ground():
			return SpatialVec()
		R_GB = self.get_body_rotation(state)
		I_CB_G = R_GB * self.mass.central_inertia() * transpose(R_GB)
		v = self.calc_body_fixed_point_velocity_in_ground(state, self.mass.center)
		return SpatialVec(I_CB_G * w, self.mass.mass * v)

	def calc_body_mass_properties_in_body(self, state, in_body_a) -> MassProperties:
		''' mass properties about this body origin, expressed in body A '''
		if self.is_same_mobilized_body(in_body_a):
			return self.mass
		return self.mass.transform(self.calc_body_rotation_from_body(state, in_body_a))

	def calc_body_spatial_inertia_matrix_in_ground(self, state) -> np.ndarray:
		''' 6x6 spatial inertia about the body origin, expressed in ground. The ground has an infinite inertia '''
		return self.express_body_mass_properties_in_ground(state).spatial_matrix()

	def calc_body_mass_center_location_in_body(self, state, in_body_a) -> vec3:
		return self.calc_body_point_location_in_body(state, self.mass.center, in_body_a)

	def calc_body_central_inertia(self, state) -> mat3:
		''' inertia about the mass center, in the body frame '''
		return self.mass.central_inertia()

	def calc_body_inertia_about_body_point(self, state, in_body_a, about_location_on_a) -> mat3:
		''' inertia of this body about a point fixed on body A, expressed in A '''
		point = in_body_a.calc_body_point_location_in_body(state, about_location_on_a, self)
		inertia = self.mass.shifted_inertia(point)
		if self.mass.is_infinite():
			return inertia
		R_AB = self.calc_body_rotation_from_body(state, in_body_a)
		return R_AB * inertia * transpose(R_AB)

	# force helpers

	def apply_one_mobility_force(self, state, which, force, mobility_forces):
		''' add a generalized force on one of this mobilizer speeds '''
		s = self._uslice(state)
		if not 0 <= which < s.stop - s.start:
			raise IndexError('mobility {} out of range for {}'.format(which, self))
		mobility_forces[s.start + which] += force

	def apply_body_force(self, state, force_in_g: SpatialVec, body_forces):
		''' add a spatial force (torque about the body origin, force) expressed in ground '''
		self._require(state, Stage.Topology)
		body_forces[self.index] = body_forces[self.index] + force_in_g

	def apply_body_torque(self, state, torque_in_g, body_forces):
		self.apply_body_force(state, SpatialVec(torque_in_g, O), body_forces)

	def apply_force_to_body_point(self, state, point_in_b, force_in_g, body_forces):
		''' add a force expressed in ground applied at a point fixed on this body '''
		r = self.express_body_vector_in_ground(state, point_in_b)
		force_in_g = vec3(force_in_g)
		self.apply_body_force(state, SpatialVec(cross(r, force_in_g), force_in_g), body_forces)

	# high level operators

	def calc_body_transform_from_body(self, state, from_body_a) -> mat4:
		''' `X_AB` placement of this body B in body A '''
		if self.is_same_mobilized_body(from_body_a):
			return mat4()
		if from_body_a.is_ground():		return self.get_body_transform(state)
		elif self.is_ground():			return affineInverse(from_body_a.get_body_transform(state))
		else:
			return affineInverse(from_body_a.get_body_transform(state)) * self.get_body_transform(state)

	def calc_body_rotation_from_body(self, state, from_body_a) -> mat3:
		''' `R_AB` orientation of this body B in body A '''
		if self.is_same_mobilized_body(from_body_a):
			return mat3()
		if from_body_a.is_ground():		return self.get_body_rotation(state)
		elif self.is_ground():			return transpose(from_body_a.get_body_rotation(state))
		else:
			return transpose(from_body_a.get_body_rotation(state)) * self.get_body_rotation(state)

	def calc_body_origin_location_in_body(self, state, in_body_a) -> vec3:
		if self.is_same_mobilized_body(in_body_a):
			return vec3(0)
		r_OG_OB = self.get_body_origin_location(state)
		if in_body_a.is_ground():	return r_OG_OB
		return in_body_a.locate_ground_point_on_body(state, r_OG_OB)

	def calc_body_point_location_in_body(self, state, location_on_b, in_body_a) -> vec3:
		if self.is_same_mobilized_body(in_body_a):	return vec3(location_on_b)
		elif in_body_a.is_ground():		return self.locate_body_point_on_ground(state, location_on_b)
		elif self.is_ground():			return in_body_a.locate_ground_point_on_body(state, location_on_b)
		else:							return self.locate_body_point_on_body(state, location_on_b, in_body_a)

	def calc_body_vector_in_body(self, state, vector_on_b, in_body_a) -> vec3:
		if self.is_same_mobilized_body(in_body_a):	return vec3(vector_on_b)
		elif in_body_a.is_ground():		return self.express_body_vector_in_ground(state, vector_on_b)
		elif self.is_ground():			return in_body_a.express_ground_vector_in_body(state, vector_on_b)
		else:							return self.express_body_vector_in_body(state, vector_on_b, in_body_a)

	def calc_body_spatial_velocity_in_body(self, state, in_body_a) -> SpatialVec:
		''' spatial velocity of this body B in body A, expressed in A '''
		V_GB = self.get_body_velocity(state)
		if in_body_a.is_ground():
			return V_GB
		return relative_velocity(
			in_body_a.get_body_transform(state), in_body_a.get_body_velocity(state),
			self.get_body_transform(state), V_GB)

	def calc_body_angular_velocity_in_body(self, state, in_body_a) -> vec3:
		w_GB = self.get_body_angular_velocity(state)
		if in_body_a.is_ground():
			return w_GB
		return in_body_a.express_ground_vector_in_body(state, w_GB - in_body_a.get_body_angular_velocity(state))

	def calc_body_origin_velocity_in_body(self, state, in_body_a) -> vec3:
		return self.calc_body_spatial_velocity_in_body(state, in_body_a).linear

	def calc_body_fixed_point_velocity_in_body(self, state, location_on_b, in_body_a) -> vec3:
		''' velocity in body A of a point fixed on this body, expressed in A '''
		R_AB = self.calc_body_rotation_from_body(state, in_body_a)
		V_AB = self.calc_body_spatial_velocity_in_body(state, in_body_a)
		p = R_AB * vec3(location_on_b)
		return V_AB.linear + cross(V_AB.angular, p)

	def calc_body_moving_point_velocity_in_body(self, state, location_on_b, velocity_on_b, in_body_a) -> vec3:
		''' not implemented: the contribution of the point own motion is not defined yet '''
		raise NotImplementedError('calc_body_moving_point_velocity_in_body is not implemented')

	def calc_body_spatial_acceleration_in_body(self, state, in_body_a) -> SpatialVec:
		''' spatial acceleration of this body B in body A, expressed in A '''
		A_GB = self.get_body_acceleration(state)
		if in_body_a.is_ground():
			return A_GB
		return relative_acceleration(
			in_body_a.get_body_transform(state), in_body_a.get_body_velocity(state), in_body_a.get_body_acceleration(state),
			self.get_body_transform(state), self.get_body_velocity(state), A_GB)

	def calc_body_angular_acceleration_in_body(self, state, in_body_a) -> vec3:
		return self.calc_body_spatial_acceleration_in_body(state, in_body_a).angular

	def calc_body_origin_acceleration_in_body(self, state, in_body_a) -> vec3:
		return self.calc_body_spatial_acceleration_in_body(state, in_body_a).linear

	def calc_body_fixed_point_acceleration_in_body(self, state, location_on_b, in_body_a) -> vec3:
		''' acceleration in body A of a point fixed on this body, expressed in A '''
		R_AB = self.calc_body_rotation_from_body(state, in_body_a)
		w_AB = self.calc_body_angular_velocity_in_body(state, in_body_a)
		A_AB = self.calc_body_spatial_acceleration_in_body(state, in_body_a)
		p = R_AB * vec3(location_on_b)
		return A_AB.linear + cross(A_AB.angular, p) + cross(w_AB, cross(w_AB, p))

	def calc_body_moving_point_acceleration_in_body(self, state, location_on_b, velocity_on_b, acceleration_on_b, in_body_a) -> vec3:
		''' not implemented: the contribution of the point own motion is not defined yet '''
		raise NotImplementedError('calc_body_moving_point_acceleration_in_body is not implemented')

	def calc_point_to_point_distance(self, state, location_on_b, body_a, location_on_a) -> float:
		''' distance between a point fixed on this body and a point fixed on body A '''
		if self.is_same_mobilized_body(body_a):
			return length(vec3(location_on_a) - vec3(location_on_b))
		return length(body_a.locate_body_point_on_ground(state, location_on_a) - self.locate_body_point_on_ground(state, location_on_b))

	def calc_fixed_point_to_point_distance_time_derivative(self, state, location_on_b, body_a, location_on_a) -> float:
		''' time derivative of `calc_point_to_point_distance`

			When the points are coincident, the direction is undefined and the relative speed is returned instead.
		'''
		if self.is_same_mobilized_body(body_a):
			return 0.
		rB, vB = self.calc_body_fixed_point_location_and_velocity_in_ground(state, location_on_b)
		rA, vA = body_a.calc_body_fixed_point_location_and_velocity_in_ground(state, location_on_a)
		r, v = rA - rB, vA - vB
		d = length(r)
		if d == 0:	return length(v)
		return dot(v, r/d)

	def calc_moving_point_to_point_distance_time_derivative(self, state, location_on_b, velocity_on_b, body_a, location_on_a, velocity_on_a) -> float:
		''' not implemented: the contribution of the points own motion is not defined yet '''
		raise NotImplementedError('calc_moving_point_to_point_distance_time_derivative is not implemented')

	def calc_fixed_point_to_point_distance_2nd_time_derivative(self, state, location_on_b, body_a, location_on_a) -> float:
		''' second time derivative of `calc_point_to_point_distance`

			When the points are coincident, the acceleration along the relative velocity is returned, or the relative acceleration magnitude if the relative velocity is also null.
		'''
		if self.is_same_mobilized_body(body_a):
			return 0.
		rB, vB, aB = self.calc_body_fixed_point_location_velocity_and_acceleration_in_ground(state, location_on_b)
		rA, vA, aA = body_a.calc_body_fixed_point_location_velocity_and_acceleration_in_ground(state, location_on_a)
		r, v, a = rA - rB, vA - vB, aA - aB
		d = length(r)
		if d == 0:
			s = length(v)
			if s == 0:	return length(a)
			return dot(a, v/s)
		u = r/d	# separation direction from B to A
		vp = v - dot(v,u)*u	# velocity perpendicular to the separation
		return dot(a,u) + dot(vp,v)/d

	def calc_moving_point_to_point_distance_2nd_time_derivative(self, state, location_on_b, velocity_on_b, acceleration_on_b, body_a, location_on_a, velocity_on_a, acceleration_on_a) -> float:
		''' not implemented: the contribution of the points own motion is not defined yet '''
		raise NotImplementedError('calc_moving_point_to_point_distance_2nd_time_derivative is not implemented')
