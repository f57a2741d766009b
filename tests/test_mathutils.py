import numpy as np
import pytest
from pytest import approx

from mobilize.mathutils import *


def test_reductions():
	''' reductions exported with the glm names still accept generators '''
	assert any(x > 1  for x in [0, 2])
	assert not all(x > 1  for x in [0, 2])
	assert max(x*x  for x in [-3, 2]) == 9
	assert min(abs(x)  for x in [-3, 2]) == 2
	assert round(2.6) == 3

def test_shift_motion():
	''' the velocity of a point of a rotating frame is the frame velocity plus the rotation effect '''
	motion = SpatialVec(vec3(0, 0, 2), vec3(1, 0, 0))
	shifted = shift_motion(motion, vec3(1, 0, 0))
	assert shifted.angular == motion.angular
	assert np.array(shifted.linear) == approx([1, 2, 0])

def test_shift_force():
	''' shifting a force keeps its power on a rigid motion '''
	force = SpatialVec(vec3(0.5, -1, 2), vec3(1, 2, 3))
	motion = SpatialVec(vec3(-1, 0.3, 0.2), vec3(0.4, 1, -2))
	offset = vec3(0.7, -0.2, 1.5)
	assert power(shift_force(force, offset), shift_motion(motion, offset)) == approx(power(force, motion))
	# a force along z taken about a point displaced along x gains a torque along y
	shifted = shift_force(SpatialVec(O, Z), X)
	assert np.array(shifted.angular) == approx([0, 1, 0])
	assert shifted.linear == Z

def test_infinite_mass():
	mass = MassProperties.infinite()
	assert mass.is_infinite()
	assert not MassProperties().is_infinite()
	rotated = mass.transform(mat3(rotate(0.3, Z)))
	assert rotated.is_infinite()
	assert not np.isnan(np.array(rotated.inertia)).any()
	assert not np.isnan(np.array(mass.shifted_inertia(vec3(1, 2, 3)))).any()
	assert not np.isnan(np.array(mass.central_inertia())).any()
	matrix = mass.spatial_matrix()
	assert np.isinf(np.diag(matrix)).all()
	assert not np.isnan(matrix).any()

def test_flatten_state():
	result = flatten_state([vec3(1, 2, 3), [4.], np.array([5., 6.])])
	assert result == approx([1, 2, 3, 4, 5, 6])
	assert result.dtype == np.float64
