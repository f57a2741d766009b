# This file is part of pymobilize,  distributed under license LGPL v3

''' Group of functions and math classes of pymobilize

	The 3D types come from PyGLM with double precision. This module only adds what glm doesn't have:

	- `SpatialVec`  the 6 components (angular, linear) vectors for velocities, accelerations and forces
	- `MassProperties`  the mass, mass center and inertia of a rigid body
	- conversions between glm types and numpy arrays
'''

from glm import *
del version, license
# keep the builtin reductions, the glm ones reject generators
from builtins import abs, all, any, max, min, pow, round
from math import pi, inf, nan, atan2
import numpy as np

from arrex import typedlist
import arrex.glm

# alias definitions
vec3 = dvec3
mat3 = dmat3
vec4 = dvec4
mat4 = dmat4
quat = dquat

# numerical precision of floats used
NUMPREC = 1e-13	# float64 here, so 14 decimals

# common base definition, for end user
O = vec3(0,0,0)
X = vec3(1,0,0)
Y = vec3(0,1,0)
Z = vec3(0,0,1)


def translation(m: mat4) -> vec3:
	''' translation part of an affine matrix '''
	return vec3(m[3])

def rotation(m: mat4) -> mat3:
	''' rotation part of an affine matrix '''
	return mat3(m)

def transform(rot=None, origin=None) -> mat4:
	''' Create an affine transformation matrix from a rotation (mat3 or quat) and a translation, both optionals '''
	m = mat4(rot) if rot is not None else mat4()
	if origin is not None:
		m[3] = vec4(origin, 1)
	return m

def tovec(array, start=0) -> vec3:
	''' vec3 from 3 consecutive items of a numpy array '''
	return vec3(float(array[start]), float(array[start+1]), float(array[start+2]))

def crossmat(v) -> np.ndarray:
	''' numpy matrix of the cross product, so that `crossmat(a) @ b == cross(a,b)` '''
	return np.array([
		[    0, -v[2],  v[1]],
		[ v[2],     0, -v[0]],
		[-v[1],  v[0],     0],
		], float)

def matarray(m: mat3) -> np.ndarray:
	''' numpy array of a mat3, indexed as `[row, column]` '''
	return np.array([[m[c][r]  for c in range(3)]  for r in range(3)], float)

def quatcoords(q: quat) -> np.ndarray:
	''' quaternion coordinates in the `(w,x,y,z)` order used in generalized coordinates '''
	return np.array([q.w, q.x, q.y, q.z], float)

def quatproduct(a, b) -> np.ndarray:
	''' hamilton product of quaternions given as `(w,x,y,z)` arrays '''
	aw, av = a[0], a[1:4]
	bw, bv = b[0], b[1:4]
	return np.concatenate([
		[aw*bw - np.dot(av, bv)],
		aw*bv + bw*av + np.cross(av, bv),
		])


class SpatialVec(object):
	''' A 6 components vector holding an angular and a linear 3D vector

		It is the representation of velocities, accelerations and forces of rigid frames:

		  * Spatial velocity:		SpatialVec(angular velocity, velocity of the frame origin)
		  * Spatial acceleration:	SpatialVec(angular acceleration, acceleration of the frame origin)
		  * Spatial force:		SpatialVec(torque about the frame origin, force)

		A spatial vector doesn't carry its reference point: the point and the expression frame are given by the context (usually the body origin and the ground frame). Use `shift_motion` and `shift_force` to change the reference point and `transform` to change the expression frame.

		Attributes:
			angular (vec3):
			linear (vec3):
	'''
	__slots__ = ('angular', 'linear')
	def __init__(self, angular=None, linear=None):
		self.angular = vec3(angular) if angular is not None else vec3(0)
		self.linear = vec3(linear) if linear is not None else vec3(0)

	def transform(self, rot) -> 'SpatialVec':
		''' express the vector in an other frame, `rot` being the rotation from the current frame to the new one '''
		if isinstance(rot, mat4):	rot = mat3(rot)
		return SpatialVec(rot*self.angular, rot*self.linear)

	def array(self) -> np.ndarray:
		''' numpy array `(angular, linear)` of 6 floats '''
		return np.array([*self.angular, *self.linear], float)

	@staticmethod
	def fromarray(array) -> 'SpatialVec':
		return SpatialVec(tovec(array, 0), tovec(array, 3))

	def __iter__(self):
		yield self.angular
		yield self.linear

	def __getitem__(self, i):
		if i == 0:		return self.angular
		elif i == 1:	return self.linear
		else:			raise IndexError('a spatial vector has only 2 components')

	def __add__(self, other):
		return SpatialVec(self.angular+other.angular, self.linear+other.linear)

	def __sub__(self, other):
		return SpatialVec(self.angular-other.angular, self.linear-other.linear)

	def __neg__(self):
		return SpatialVec(-self.angular, -self.linear)

	def __mul__(self, x):
		x = float(x)
		return SpatialVec(x*self.angular, x*self.linear)
	__rmul__ = __mul__

	def __truediv__(self, x):
		x = float(x)
		return SpatialVec(self.angular/x, self.linear/x)

	def __eq__(self, other):
		return isinstance(other, SpatialVec) and self.angular == other.angular and self.linear == other.linear

	def __repr__(self):
		return '{}({}, {})'.format(self.__class__.__name__, repr(self.angular), repr(self.linear))

def shift_motion(motion: SpatialVec, offset: vec3) -> SpatialVec:
	''' motion (velocity) of a point displaced by `offset` from the current reference point, on the same rigid frame '''
	return SpatialVec(motion.angular, motion.linear + cross(motion.angular, offset))

def shift_force(force: SpatialVec, offset: vec3) -> SpatialVec:
	''' same force but with its torque taken about a point displaced by `offset` from the current reference point '''
	return SpatialVec(force.angular - cross(offset, force.linear), force.linear)

def power(force: SpatialVec, motion: SpatialVec) -> float:
	''' Power of a force on a motion:   `dot(torque, angular) + dot(force, linear)`

		Both vectors must be expressed in the same frame about the same point.
	'''
	return dot(force.angular, motion.angular) + dot(force.linear, motion.linear)


class MassProperties(object):
	''' Mass distribution of a rigid body

		Attributes:
			mass (float):     the body mass
			center (vec3):    the mass center location, from the body origin
			inertia (mat3):   the inertia tensor about the body origin

		All vectors and tensors are expressed in the same frame, usually the body frame.
	'''
	__slots__ = ('mass', 'center', 'inertia')
	def __init__(self, mass=1., center=None, inertia=None):
		self.mass = float(mass)
		self.center = vec3(center) if center is not None else vec3(0)
		self.inertia = mat3(inertia) if inertia is not None else mat3(0)

	@staticmethod
	def point(mass, center) -> 'MassProperties':
		''' properties of a point mass located at `center` '''
		center = vec3(center)
		return MassProperties(mass, center, mass * (mat3(dot(center,center)) - outerProduct(center, center)))

	@staticmethod
	def infinite() -> 'MassProperties':
		''' properties of an immovable body, like the ground '''
		return MassProperties(inf, vec3(0), mat3(inf))

	def is_infinite(self) -> bool:
		return self.mass == inf

	def transform(self, rot) -> 'MassProperties':
		''' express the properties in an other frame, `rot` being the rotation from the current frame to the new one '''
		if isinstance(rot, quat):	rot = mat3_cast(rot)
		if self.is_infinite():
			return MassProperties(inf, rot*self.center, self.inertia)
		return MassProperties(self.mass, rot*self.center, rot * self.inertia * transpose(rot))

	def central_inertia(self) -> mat3:
		''' inertia about the mass center '''
		if self.is_infinite():	return mat3(self.inertia)
		c = self.center
		return self.inertia - self.mass * (mat3(dot(c,c)) - outerProduct(c, c))

	def shifted_inertia(self, point) -> mat3:
		''' inertia about the given point '''
		if self.is_infinite():	return mat3(self.inertia)
		d = vec3(point) - self.center
		return self.central_inertia() + self.mass * (mat3(dot(d,d)) - outerProduct(d, d))

	def spatial_matrix(self) -> np.ndarray:
		''' spatial inertia matrix (6x6) mapping a spatial velocity at the body origin to the momentum about the body origin

			.. code::

				M = [  inertia       crossmat(m*c) ]
				    [ -crossmat(m*c)    m * 1      ]

			An infinite mass gives an infinite diagonal.
		'''
		if self.is_infinite():
			return np.diag(np.full(6, inf))
		mc = crossmat(self.mass * self.center)
		result = np.zeros((6,6), float)
		result[:3,:3] = matarray(self.inertia)
		result[:3,3:] = mc
		result[3:,:3] = -mc
		result[3:,3:] = self.mass * np.eye(3)
		return result

	def __repr__(self):
		return '{}({}, {}, {})'.format(self.__class__.__name__, self.mass, repr(self.center), repr(self.inertia))


def flatten(structured):
	if hasattr(structured, '__iter__'):
		for x in structured:
			yield from flatten(x)
	else:
		yield structured

def flatten_state(structured, dtype='d') -> np.ndarray:
	''' flat numpy array of all the scalars in a nested structure of numbers, vectors or arrays '''
	return np.array(typedlist([float(x)  for x in flatten(structured)], dtype))
