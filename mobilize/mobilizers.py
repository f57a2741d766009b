# This file is part of pymobilize,  distributed under license LGPL v3

''' This module defines the mobilizers: the joints attaching each body to its parent.

	A mobilizer is parameterized by `nq` generalized coordinates and `nu` generalized speeds. It links the frame F fixed on the parent body to the frame M fixed on the child body, and provides

	- `calc_transform(q)`  the transformation matrix `X_FM` from M to F
	- `calc_motion_map(q)`  the matrix `H_FM` so that `V_FM = H_FM @ u`  (shape `(6, nu)`)
	- `calc_motion_map_dot(q, u)`  the time derivative of `H_FM`

	`V_FM` is the spatial velocity of M in F: the angular velocity of M in F and the velocity of the origin of M in F, both expressed in F.

	Mobilizers hold no state: the coordinates are always given as numpy arrays of the right size.
'''

import warnings
import numpy as np

from .mathutils import *
from . import settings

__all__ = ['Mobilizer', 'Ground', 'Weld', 'Pin', 'Slider', 'Screw', 'Universal', 'Cylinder', 'Planar',
			'Gimbal', 'Ball', 'Translation', 'Free', 'Custom']


def _column(angular=O, linear=O) -> np.ndarray:
	return np.array([*angular, *linear], float)

def _columns(*columns) -> np.ndarray:
	if not columns:
		return np.zeros((6,0))
	return np.stack(columns, axis=1)

def _quaternion(coords) -> quat:
	''' rotation quaternion from `(w,x,y,z)` coordinates, normalized '''
	q = quat(float(coords[0]), float(coords[1]), float(coords[2]), float(coords[3]))
	n = length(q)
	if n < NUMPREC:
		raise ValueError('a null quaternion cannot represent a rotation')
	if abs(n-1) > settings.numeric['quaternion_drift']:
		warnings.warn('quaternion coordinates are not normalized (norm {:.6g}), they are normalized on the fly'.format(n))
	return q / n

def _quaternion_rate(coords, w) -> np.ndarray:
	''' derivative of `(w,x,y,z)` quaternion coordinates for an angular velocity `w` expressed in the fixed frame '''
	return 0.5 * quatproduct(np.array([0, *w], float), coords)

def _transform_error(current, target) -> np.ndarray:
	''' spatial displacement (rotation vector, translation) from `current` to `target`, expressed in their reference frame '''
	d = quat_cast(mat3(target) * transpose(mat3(current)))
	if d.w < 0:	d = -d
	v = vec3(d.x, d.y, d.z)
	s = length(v)
	r = v * (2*atan2(s, d.w) / s)  if s > NUMPREC else 2*v
	return np.array([*r, *(translation(target) - translation(current))], float)

def _closest_angle(angle, close) -> float:
	''' the angle equivalent modulo 2pi the closest to `close` '''
	return angle + 2*pi * round((close - angle) / (2*pi))

def _angle_in_plane(m) -> float:
	''' rotation angle around z of a transformation matrix '''
	return atan2(m[0][1] - m[1][0], m[0][0] + m[1][1])

def _closest_quaternion(rotation, close) -> np.ndarray:
	''' quaternion coordinates of a rotation matrix, with the sign the closest to `close` '''
	coords = quatcoords(normalize(quat_cast(mat3(rotation))))
	if np.dot(coords, close) < 0:
		coords = -coords
	return coords


class Mobilizer:
	'''
		A Mobilizer gives the movement of a body relatively to its parent.

		Attributes:
			nq:       number of generalized coordinates
			nu:       number of generalized speeds, `nu <= nq`
			default:  default generalized coordinates, as an array of `nq` floats

		Subclasses must implement `calc_transform` and `calc_motion_map`. `calc_motion_map_dot` defaults to zero, which is only correct for constant motion maps. When `nq != nu` the subclass must also implement `calc_qdot` and `calc_qdotdot`.
	'''
	nq = 0
	nu = 0
	default = np.zeros(0)

	def get_default(self) -> np.ndarray:
		''' default coordinates as a fresh array '''
		return np.array(self.default, float).reshape(self.nq)

	def normalize(self, q) -> np.ndarray:
		''' make the given coordinates consistent, this is a no-op except for quaternions '''
		return q

	def calc_transform(self, q) -> mat4:
		''' transformation matrix `X_FM` from the outboard frame M to the inboard frame F '''
		raise NotImplementedError('{} does not implement calc_transform'.format(type(self).__name__))

	def calc_motion_map(self, q) -> np.ndarray:
		''' matrix `H_FM` of shape `(6, nu)` mapping the generalized speeds to the spatial velocity `V_FM` '''
		raise NotImplementedError('{} does not implement calc_motion_map'.format(type(self).__name__))

	def calc_motion_map_dot(self, q, u) -> np.ndarray:
		''' time derivative of `H_FM`, taken in F '''
		return np.zeros((6, self.nu))

	def calc_qdot(self, q, u) -> np.ndarray:
		''' time derivative of the coordinates for the given speeds '''
		if self.nq != self.nu:
			raise NotImplementedError('{} has nq != nu and must implement calc_qdot'.format(type(self).__name__))
		return np.array(u, float)

	def calc_qdotdot(self, q, u, udot) -> np.ndarray:
		''' second time derivative of the coordinates '''
		if self.nq != self.nu:
			raise NotImplementedError('{} has nq != nu and must implement calc_qdotdot'.format(type(self).__name__))
		return np.array(udot, float)

	def calc_q_matrix(self, q) -> np.ndarray:
		''' matrix `Q` of shape `(nq, nu)` so that `qdot = Q @ u` '''
		if self.nq == self.nu:
			return np.eye(self.nq)
		return np.stack([self.calc_qdot(q, e)  for e in np.eye(self.nu)], axis=1)

	def inverse(self, matrix, close=None, maxiter=50) -> np.ndarray:
		''' inverse kinematic computation

			the default implementation is using a newton method to nullify the error between the given and acheived matrices, mobilizers with a closed form override it

			Parameters:
				matrix:   the transform `X_FM` we want the coordinates for
				close:    a known solution we want the result the closest to, defaults to `self.default`
				maxiter:  maximum number of iterations

			Returns:
				the coordinates whose transform is the closest to `matrix` this mobilizer can reach
		'''
		q = self.get_default() if close is None else self.normalize(np.array(close, float))
		target = mat4(matrix)
		precision = settings.numeric['precision']
		for i in range(maxiter):
			error = _transform_error(self.calc_transform(q), target)
			if np.linalg.norm(error) < precision:
				break
			step = np.linalg.lstsq(self.calc_motion_map(q), error, rcond=None)[0]
			if np.linalg.norm(step) < precision:
				break
			q = self.normalize(q + self.calc_q_matrix(q) @ step)
		return q

	def inverse_velocity(self, q, velocity: SpatialVec) -> np.ndarray:
		''' speeds whose velocity `V_FM` is the closest to the given one, in the least squares sense '''
		if not self.nu:
			return np.zeros(0)
		return np.linalg.lstsq(self.calc_motion_map(q), velocity.array(), rcond=None)[0]

	def __repr__(self):
		return '{}()'.format(self.__class__.__name__)


class Ground(Mobilizer):
	''' the mobilizer of the ground body, it never moves '''
	def calc_transform(self, q):
		return mat4()
	def calc_motion_map(self, q):
		return _columns()
	def inverse(self, matrix, close=None):
		return np.zeros(0)

class Weld(Mobilizer):
	'''
		mobilizer with no degree of freedom,
		the outboard frame M stays coincident with the inboard frame F
	'''
	def calc_transform(self, q):
		return mat4()
	def calc_motion_map(self, q):
		return _columns()
	def inverse(self, matrix, close=None):
		return np.zeros(0)


class Pin(Mobilizer):
	''' rotation of angle `q` around the common z axis of F and M '''
	nq = nu = 1
	default = np.zeros(1)

	def __init__(self, default=None):
		if default is not None:
			self.default = np.array([default], float)

	def calc_transform(self, q):
		return rotate(float(q[0]), Z)

	def calc_motion_map(self, q):
		return _columns(_column(angular=Z))

	def inverse(self, matrix, close=None):
		close = self.default if close is None else close
		return np.array([_closest_angle(_angle_in_plane(mat4(matrix)), float(close[0]))])

class Slider(Mobilizer):
	''' translation of length `q` along the common x axis of F and M '''
	nq = nu = 1
	default = np.zeros(1)

	def __init__(self, default=None):
		if default is not None:
			self.default = np.array([default], float)

	def calc_transform(self, q):
		return translate(float(q[0])*X)

	def calc_motion_map(self, q):
		return _columns(_column(linear=X))

	def inverse(self, matrix, close=None):
		return np.array([mat4(matrix)[3][0]])

class Screw(Mobilizer):
	''' rotation of angle `q` around the z axis, coupled to a translation of `pitch*q` along it '''
	nq = nu = 1
	default = np.zeros(1)

	def __init__(self, pitch, default=None):
		self.pitch = float(pitch)
		if default is not None:
			self.default = np.array([default], float)

	def calc_transform(self, q):
		return translate(self.pitch*float(q[0])*Z) * rotate(float(q[0]), Z)

	def calc_motion_map(self, q):
		return _columns(_column(angular=Z, linear=self.pitch*Z))

	def __repr__(self):
		return '{}({})'.format(self.__class__.__name__, self.pitch)

class Cylinder(Mobilizer):
	''' rotation `q[0]` around and translation `q[1]` along the common z axis '''
	nq = nu = 2
	default = np.zeros(2)

	def calc_transform(self, q):
		return translate(float(q[1])*Z) * rotate(float(q[0]), Z)

	def calc_motion_map(self, q):
		return _columns(_column(angular=Z), _column(linear=Z))

	def inverse(self, matrix, close=None):
		m = mat4(matrix)
		close = self.default if close is None else close
		return np.array([_closest_angle(_angle_in_plane(m), float(close[0])), m[3][2]])

class Planar(Mobilizer):
	''' rotation `q[0]` around the z axis and translation `(q[1], q[2])` in the xy plane of F '''
	nq = nu = 3
	default = np.zeros(3)

	def calc_transform(self, q):
		return translate(vec3(float(q[1]), float(q[2]), 0)) * rotate(float(q[0]), Z)

	def calc_motion_map(self, q):
		return _columns(_column(angular=Z), _column(linear=X), _column(linear=Y))

	def inverse(self, matrix, close=None):
		m = mat4(matrix)
		close = self.default if close is None else close
		return np.array([_closest_angle(_angle_in_plane(m), float(close[0])), m[3][0], m[3][1]])

class Translation(Mobilizer):
	''' translation of M origin in F, `q` being its coordinates in F '''
	nq = nu = 3
	default = np.zeros(3)

	def calc_transform(self, q):
		return translate(tovec(q))

	def calc_motion_map(self, q):
		return _columns(_column(linear=X), _column(linear=Y), _column(linear=Z))

	def inverse(self, matrix, close=None):
		return np.array(translation(mat4(matrix)))


class Universal(Mobilizer):
	''' rotation `q[0]` around the x axis, then `q[1]` around the new y axis '''
	nq = nu = 2
	default = np.zeros(2)

	def calc_transform(self, q):
		return rotate(float(q[0]), X) * rotate(float(q[1]), Y)

	def calc_motion_map(self, q):
		y = mat3(rotate(float(q[0]), X)) * Y
		return _columns(_column(angular=X), _column(angular=y))

	def calc_motion_map_dot(self, q, u):
		y = mat3(rotate(float(q[0]), X)) * Y
		return _columns(_column(), _column(angular=cross(float(u[0])*X, y)))

class Gimbal(Mobilizer):
	''' body fixed x-y-z euler angles, the generalized speeds are the angles derivatives

		this mobilizer is singular when `q[1]` is +-pi/2
	'''
	nq = nu = 3
	default = np.zeros(3)

	def _axes(self, q):
		rx = mat3(rotate(float(q[0]), X))
		y = rx * Y
		z = rx * mat3(rotate(float(q[1]), Y)) * Z
		return X, y, z

	def calc_transform(self, q):
		return rotate(float(q[0]), X) * rotate(float(q[1]), Y) * rotate(float(q[2]), Z)

	def calc_motion_map(self, q):
		return _columns(*(_column(angular=axis)  for axis in self._axes(q)))

	def calc_motion_map_dot(self, q, u):
		x, y, z = self._axes(q)
		# each axis rotates with the angular velocity of the rotations before it
		w1 = float(u[0])*x
		w2 = w1 + float(u[1])*y
		return _columns(_column(), _column(angular=cross(w1, y)), _column(angular=cross(w2, z)))


class Ball(Mobilizer):
	''' free rotation around the common origin of F and M

		the coordinates are a quaternion `(w,x,y,z)`, the speeds are the angular velocity of M in F, expressed in F
	'''
	nq = 4
	nu = 3
	default = np.array([1,0,0,0], float)

	def __init__(self, default: quat=None):
		if default is not None:
			self.default = quatcoords(normalize(quat(default)))

	def normalize(self, q):
		return q / np.linalg.norm(q)

	def calc_transform(self, q):
		return mat4(mat3_cast(_quaternion(q)))

	def calc_motion_map(self, q):
		return _columns(_column(angular=X), _column(angular=Y), _column(angular=Z))

	def calc_qdot(self, q, u):
		return _quaternion_rate(q, u)

	def calc_qdotdot(self, q, u, udot):
		return _quaternion_rate(q, udot) + _quaternion_rate(_quaternion_rate(q, u), u)

	def inverse(self, matrix, close=None):
		return _closest_quaternion(mat3(matrix), self.default if close is None else close)

class Free(Mobilizer):
	''' unrestricted motion of M in F

		the coordinates are a quaternion `(w,x,y,z)` followed by the M origin position in F,
		the speeds are the angular velocity of M in F followed by the velocity of its origin, all expressed in F
	'''
	nq = 7
	nu = 6
	default = np.array([1,0,0,0, 0,0,0], float)

	def __init__(self, default: mat4=None):
		if default is not None:
			default = mat4(default)
			self.default = np.concatenate([quatcoords(normalize(quat_cast(mat3(default)))), np.array(translation(default))])

	def normalize(self, q):
		q = np.array(q, float)
		q[:4] /= np.linalg.norm(q[:4])
		return q

	def calc_transform(self, q):
		return transform(_quaternion(q[:4]), tovec(q, 4))

	def inverse(self, matrix, close=None):
		m = mat4(matrix)
		close = self.default if close is None else close
		return np.concatenate([_closest_quaternion(mat3(m), close[:4]), np.array(translation(m))])

	def calc_motion_map(self, q):
		return np.eye(6)

	def calc_qdot(self, q, u):
		return np.concatenate([_quaternion_rate(q[:4], u[:3]), u[3:]])

	def calc_qdotdot(self, q, u, udot):
		rate = _quaternion_rate(q[:4], u[:3])
		return np.concatenate([
			_quaternion_rate(q[:4], udot[:3]) + _quaternion_rate(rate, u[:3]),
			udot[3:],
			])


class Custom(Mobilizer):
	''' mobilizer defined by user functions

		Parameters:
			nq, nu:          number of coordinates and speeds
			transform:       function `q -> mat4` returning `X_FM`
			motion_map:      function `q -> ndarray (6,nu)` returning `H_FM`
			motion_map_dot:  function `(q,u) -> ndarray (6,nu)`, optional
			qdot:            function `(q,u) -> ndarray (nq)`, required when `nq != nu`
			qdotdot:         function `(q,u,udot) -> ndarray (nq)`, required when `nq != nu`
			default:         default coordinates

		When `motion_map_dot` is not given, it is computed by finite differentiation of `motion_map` along `qdot`, with the step `settings.numeric['finite_difference']`
	'''
	def __init__(self, nq, nu, transform, motion_map, motion_map_dot=None, qdot=None, qdotdot=None, default=None):
		if nu > nq:
			raise ValueError('a mobilizer cannot have more speeds than coordinates')
		if nq != nu and (qdot is None or qdotdot is None):
			raise TypeError('qdot and qdotdot must be provided when nq != nu')
		self.nq, self.nu = nq, nu
		self._transform = transform
		self._motion_map = motion_map
		self._motion_map_dot = motion_map_dot
		self._qdot = qdot
		self._qdotdot = qdotdot
		self.default = np.zeros(nq) if default is None else flatten_state(default)
		self._warned = False

	def calc_transform(self, q):
		return mat4(self._transform(q))

	def calc_motion_map(self, q):
		return np.asarray(self._motion_map(q), float).reshape(6, self.nu)

	def calc_motion_map_dot(self, q, u):
		if self._motion_map_dot:
			return np.asarray(self._motion_map_dot(q, u), float).reshape(6, self.nu)
		if not self._warned:
			warnings.warn('{} has no motion_map_dot, using finite differences'.format(self))
			self._warned = True
		delta = settings.numeric['finite_difference']
		qdot = self.calc_qdot(q, u)
		return (self.calc_motion_map(q + delta*qdot) - self.calc_motion_map(q - delta*qdot)) / (2*delta)

	def calc_qdot(self, q, u):
		if self._qdot:
			return np.asarray(self._qdot(q, u), float)
		return super().calc_qdot(q, u)

	def calc_qdotdot(self, q, u, udot):
		if self._qdotdot:
			return np.asarray(self._qdotdot(q, u, udot), float)
		return super().calc_qdotdot(q, u, udot)

	def __repr__(self):
		return '{}(nq={}, nu={})'.format(self.__class__.__name__, self.nq, self.nu)
