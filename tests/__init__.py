import numpy as np

from mobilize.mathutils import *


def numerical_derivative(function, x, direction, step=1e-6):
	''' central finite difference of `function` at `x` along `direction` '''
	x = np.asarray(x, float)
	direction = np.asarray(direction, float)
	return (np.asarray(function(x + step*direction)) - np.asarray(function(x - step*direction))) / (2*step)

def skew_vector(m: mat3) -> vec3:
	''' the vector of the antisymmetric part of a matrix, the angular velocity for `m = dR * transpose(R)` '''
	return 0.5 * vec3(m[1][2] - m[2][1], m[2][0] - m[0][2], m[0][1] - m[1][0])

def numerical_motion(transform, step=1e-6) -> np.ndarray:
	''' spatial velocity `(angular, linear)` of a moving frame, from its transformation matrix `transform(t)` around `t=0` '''
	after, before = transform(step), transform(-step)
	R = mat3(transform(0))
	dR = (mat3(after) - mat3(before)) / (2*step)
	w = skew_vector(dR * transpose(R))
	v = (translation(after) - translation(before)) / (2*step)
	return np.array([*w, *v])
