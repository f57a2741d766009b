import numpy as np
import pytest
from pytest import approx

from mobilize.state import *


def realized(nq=2, nu=2, stage=Stage.Position):
	state = State()
	state.allocate(nq, nu)
	for s in range(Stage.Topology, stage+1):
		state.advance(Stage(s))
	return state

def test_stage_order():
	assert list(Stage) == sorted(Stage)
	assert Stage.Empty.next() == Stage.Topology
	assert Stage.Acceleration.prev() == Stage.Dynamics
	with pytest.raises(ValueError):
		Stage.Acceleration.next()

def test_empty_state():
	state = State()
	assert state.stage == Stage.Empty
	with pytest.raises(StageViolation):
		state.get_q()
	with pytest.raises(StageViolation):
		state.cached(('matter', 'X_GB'))

def test_advance_one_at_a_time():
	state = State()
	with pytest.raises(StageViolation):
		state.advance(Stage.Model)
	state.advance(Stage.Topology)
	assert state.get_stage() == Stage.Topology

def test_cache_discipline():
	state = realized()
	state.cache(('body', 'x'), Stage.Position, 1.)
	state.cache(('body', 'i'), Stage.Instance, 2.)
	assert state.cached(('body', 'x')) == 1.
	assert state.iscached(('body', 'x'))

	state.set_q([1, 2])
	assert state.stage == Stage.Time
	assert not state.iscached(('body', 'x'))
	with pytest.raises(StageViolation):
		state.cached(('body', 'x'))
	# lower stages are kept
	assert state.cached(('body', 'i')) == 2.

def test_setters_invalidation():
	for setter, value, stage in [
			(State.set_time, 1., Stage.Instance),
			(State.set_q, [0, 0], Stage.Time),
			(State.set_u, [0, 0], Stage.Position),
			(State.set_udot, [0, 0], Stage.Dynamics),
			]:
		state = realized(stage=Stage.Acceleration)
		setter(state, value)
		assert state.stage == stage, setter

	state = realized(stage=Stage.Acceleration)
	state.resize_multipliers(3)
	state.set_multipliers([1, 2, 3])
	assert state.stage == Stage.Dynamics
	assert state.get_multipliers() == approx([1, 2, 3])

def test_invalidate_below_marker():
	state = realized(stage=Stage.Time)
	state.invalidate(Stage.Velocity)
	assert state.stage == Stage.Time
	with pytest.raises(ValueError):
		state.invalidate(Stage.Empty)

def test_dimension_mismatch():
	state = realized()
	with pytest.raises(DimensionMismatch):
		state.set_q([1, 2, 3])
	with pytest.raises(DimensionMismatch):
		state.set_u([1])
	# failed setter doesn't invalidate
	assert state.stage == Stage.Position

def test_multipliers_need_instance():
	state = realized(stage=Stage.Model)
	with pytest.raises(StageViolation):
		state.set_multipliers([])

def test_variables_copy():
	state = realized()
	q = state.get_q()
	q[0] = 5
	assert state.get_q()[0] == 0

def test_clone():
	state = realized()
	state.cache(('body', 'x'), Stage.Position, [1.])
	other = state.clone()
	other.set_q([3, 4])
	assert state.get_q() == approx([0, 0])
	assert state.stage == Stage.Position
	assert state.cached(('body', 'x')) == [1.]
	assert other.stage == Stage.Time

def test_model_instance_variables():
	state = realized(stage=Stage.Instance)
	state.set_instance_variable(('body', 'frame'), 1)
	assert state.stage == Stage.Model
	state.set_model_variable(('constraint', 'enabled'), False)
	assert state.stage == Stage.Topology
	with pytest.raises(StageViolation):
		state.set_instance_variable(('body', 'frame'), 2)
