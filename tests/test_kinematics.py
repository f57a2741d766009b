import numpy as np
import pytest
from pytest import approx

from mobilize.mathutils import *
from mobilize.state import Stage, StageViolation, DimensionMismatch
from mobilize.matter import Matter
from mobilize import mobilizers

from . import numerical_motion

np.random.seed(7)


def planar_arm(lengths):
	''' chain of pins, each body frame is on its joint and the next joint is along its x axis '''
	matter = Matter()
	parent = matter.ground
	inboard = vec3(0)
	for length in lengths:
		parent = matter.add_body(parent, mobilizers.Pin(), inboard=inboard)
		inboard = vec3(length, 0, 0)
	return matter

def spatial_chain():
	''' chain of mobilizers with non constant motion maps '''
	matter = Matter()
	a = matter.add_body(matter.ground, mobilizers.Free(), outboard=vec3(0.1, 0.2, 0))
	b = matter.add_body(a, mobilizers.Gimbal(), inboard=vec3(1, 0, 0.5), outboard=vec3(0, -0.3, 0.2))
	c = matter.add_body(b, mobilizers.Universal(), inboard=translate(vec3(0, 1, 0)) * rotate(0.3, X), outboard=vec3(-0.5, 0, 0))
	d = matter.add_body(b, mobilizers.Ball(), inboard=vec3(0.2, 0.2, 0.2))
	e = matter.add_body(d, mobilizers.Screw(0.2), outboard=vec3(0.3, 0, 0))
	return matter

def randomize(matter, state):
	nq, nu = matter.get_num_q(state), matter.get_num_u(state)
	state.set_q(state.get_q() + np.random.normal(size=nq) * 0.5)
	for body in matter.bodies[1:]:
		body.set_q(state, body.mobilizer.normalize(body.get_q(state)))
	state.set_u(np.random.normal(size=nu))
	state.set_udot(np.random.normal(size=nu))

def moved(matter, state, t):
	''' state advanced by a time step `t` at first order '''
	matter.realize(state, Stage.Acceleration)
	other = state.clone()
	other.set_q(state.get_q() + t*matter.get_qdot(state))
	other.set_u(state.get_u() + t*state.get_udot())
	matter.realize(other, Stage.Velocity)
	return other


def test_pendulum():
	matter = Matter()
	arm = matter.add_body(matter.ground, mobilizers.Pin(), outboard=vec3(-1, 0, 0))
	state = matter.default_state()
	arm.set_q(state, [pi/2])
	matter.realize(state, Stage.Position)
	assert np.array(arm.get_body_origin_location(state)) == approx([0, 1, 0], abs=1e-12)
	assert np.array(arm.get_body_rotation(state) * X) == approx([0, 1, 0], abs=1e-12)

def test_planar_arm_closed_form():
	lengths = [1., 0.7, 0.4]
	matter = planar_arm(lengths)
	tip = matter.bodies[-1]
	state = matter.default_state()
	for i in range(5):
		q, u, udot = np.random.normal(size=(3,3))
		state.set_q(q)
		state.set_u(u)
		state.set_udot(udot)
		matter.realize(state)

		phi, omega, alpha = np.cumsum(q), np.cumsum(u), np.cumsum(udot)
		L = np.array(lengths)
		location = [np.sum(L*np.cos(phi)), np.sum(L*np.sin(phi)), 0]
		velocity = [np.sum(-L*np.sin(phi)*omega), np.sum(L*np.cos(phi)*omega), 0]
		acceleration = [
			np.sum(-L*(np.cos(phi)*omega**2 + np.sin(phi)*alpha)),
			np.sum(L*(-np.sin(phi)*omega**2 + np.cos(phi)*alpha)),
			0]

		point = vec3(lengths[-1], 0, 0)
		assert np.array(tip.locate_body_point_on_ground(state, point)) == approx(location)
		assert np.array(tip.calc_body_fixed_point_velocity_in_ground(state, point)) == approx(velocity)
		assert np.array(tip.calc_body_fixed_point_acceleration_in_ground(state, point)) == approx(acceleration)
		assert np.array(tip.get_body_angular_velocity(state)) == approx([0, 0, omega[-1]])
		assert np.array(tip.get_body_angular_acceleration(state)) == approx([0, 0, alpha[-1]])

		p, v, a = tip.calc_body_fixed_point_location_velocity_and_acceleration_in_ground(state, point)
		assert np.array(p) == approx(location)
		assert np.array(v) == approx(velocity)
		assert np.array(a) == approx(acceleration)

def test_ground_velocity():
	''' body velocities match the finite difference of their transforms in time '''
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state)
	for body in matter.bodies[1:]:
		expected = numerical_motion(lambda t: body.get_body_transform(moved(matter, state, t)))
		assert body.get_body_velocity(state).array() == approx(expected, abs=1e-5)

def test_ground_acceleration():
	''' body accelerations match the finite difference of their velocities in time '''
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state)
	step = 1e-6
	for body in matter.bodies[1:]:
		after = body.get_body_velocity(moved(matter, state, step)).array()
		before = body.get_body_velocity(moved(matter, state, -step)).array()
		assert body.get_body_acceleration(state).array() == approx((after - before)/(2*step), abs=1e-5)

def test_relative_kinematics():
	''' relative velocity and acceleration between two moving bodies '''
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state)
	step = 1e-6
	base, body = matter.bodies[3], matter.bodies[5]

	expected = numerical_motion(lambda t: body.calc_body_transform_from_body(moved(matter, state, t), base))
	V_AB = body.calc_body_spatial_velocity_in_body(state, base)
	assert V_AB.array() == approx(expected, abs=1e-5)
	assert np.array(body.calc_body_angular_velocity_in_body(state, base)) == approx(expected[:3], abs=1e-5)

	after = body.calc_body_spatial_velocity_in_body(moved(matter, state, step), base).array()
	before = body.calc_body_spatial_velocity_in_body(moved(matter, state, -step), base).array()
	A_AB = body.calc_body_spatial_acceleration_in_body(state, base)
	assert A_AB.array() == approx((after - before)/(2*step), abs=1e-5)

	point = vec3(0.3, -0.2, 0.5)
	def location(t):
		return body.calc_body_point_location_in_body(moved(matter, state, t), point, base)
	assert np.array(body.calc_body_fixed_point_velocity_in_body(state, point, base)) == approx(
		np.array((location(step) - location(-step)) / (2*step)), abs=1e-5)
	assert np.array(body.calc_station_velocity_in_body(state, point, base)) == approx(
		np.array(body.calc_body_fixed_point_velocity_in_body(state, point, base)), abs=1e-9)
	def velocity(t):
		return body.calc_body_fixed_point_velocity_in_body(moved(matter, state, t), point, base)
	assert np.array(body.calc_body_fixed_point_acceleration_in_body(state, point, base)) == approx(
		np.array((velocity(step) - velocity(-step)) / (2*step)), abs=1e-5)

	# relative to ground is the ground response
	assert body.calc_body_spatial_velocity_in_body(state, matter.ground) == body.get_body_velocity(state)
	assert body.calc_body_spatial_acceleration_in_body(state, matter.ground) == body.get_body_acceleration(state)
	assert body.calc_body_spatial_velocity_in_body(state, body).array() == approx(np.zeros(6), abs=1e-12)

def test_round_trip():
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state, Stage.Position)
	p = vec3(1, -2, 3)
	for body in matter.bodies:
		assert np.array(body.locate_ground_point_on_body(state, body.locate_body_point_on_ground(state, p))) == approx(np.array(p))
		assert np.array(body.express_ground_vector_in_body(state, body.express_body_vector_in_ground(state, p))) == approx(np.array(p))
		other = matter.bodies[2]
		assert np.array(other.locate_body_point_on_body(state, body.locate_body_point_on_body(state, p, other), body)) == approx(np.array(p))
		assert np.array(body.calc_body_point_location_in_body(state, p, other)) == approx(np.array(body.locate_body_point_on_body(state, p, other)))
		assert np.array(body.calc_body_vector_in_body(state, p, other)) == approx(np.array(body.express_body_vector_in_body(state, p, other)))
		X_AB = body.calc_body_transform_from_body(state, other)
		assert np.array(X_AB * p) == approx(np.array(body.calc_body_point_location_in_body(state, p, other)))
		assert np.array(body.calc_body_origin_location_in_body(state, other)) == approx(np.array(translation(X_AB)))

def test_stage_discipline():
	matter = planar_arm([1, 1])
	body = matter.bodies[2]
	state = matter.default_state()
	with pytest.raises(StageViolation):
		body.get_body_transform(state)
	matter.realize(state, Stage.Position)
	body.get_body_transform(state)
	with pytest.raises(StageViolation):
		body.get_body_velocity(state)
	body.set_q(state, [0.3])
	with pytest.raises(StageViolation):
		body.get_body_transform(state)
	with pytest.raises(DimensionMismatch):
		body.set_q(state, [0.3, 0.2])

def test_realize_failure():
	''' a failing realization leaves the state at its previous stage '''
	matter = spatial_chain()
	state = matter.default_state()
	matter.realize(state, Stage.Time)
	ball = matter.bodies[4]
	ball.set_q(state, [0, 0, 0, 0])
	with pytest.raises(ValueError):
		matter.realize(state, Stage.Acceleration)
	assert state.stage == Stage.Time
	with pytest.raises(StageViolation):
		ball.get_body_transform(state)

def test_topology_generation():
	matter = planar_arm([1, 1])
	state = matter.default_state()
	matter.bodies[1].set_q(state, [0.5])
	matter.realize(state, Stage.Position)
	matter.add_body(matter.bodies[2], mobilizers.Slider())
	with pytest.raises(StageViolation):
		matter.bodies[1].get_body_transform(state)
	matter.realize(state, Stage.Position)
	assert matter.get_num_q(state) == 3
	assert matter.bodies[1].get_q(state) == approx([0])

def test_partitions():
	matter = spatial_chain()
	state = matter.default_state()
	assert matter.get_num_q(state) == 7+3+2+4+1
	assert matter.get_num_u(state) == 6+3+2+3+1
	q = np.arange(matter.get_num_q(state), dtype=float)
	parts = [body.get_my_part_q(state, q)  for body in matter.bodies]
	assert sorted(np.concatenate(parts)) == approx(q)
	for body in matter.bodies:
		assert body.get_num_q(state) == len(body.get_q(state))
		assert body.get_num_u(state) == len(body.get_u(state))
	ball = matter.bodies[4]
	assert ball.get_q(state) == approx([1, 0, 0, 0])
	assert ball.get_one_q(state, 0) == 1
	with pytest.raises(DimensionMismatch):
		ball.get_my_part_u(state, np.zeros(3))

def test_qdot():
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state)
	for body in matter.bodies[1:]:
		q, u, udot = body.get_q(state), body.get_u(state), body.get_udot(state)
		assert body.get_qdot(state) == approx(body.mobilizer.calc_qdot(q, u))
		assert body.get_qdotdot(state) == approx(body.mobilizer.calc_qdotdot(q, u, udot))

def test_instance_frames():
	matter = Matter()
	arm = matter.add_body(matter.ground, mobilizers.Slider())
	state = matter.default_state()
	matter.realize(state, Stage.Position)
	arm.set_inboard_frame(state, vec3(0, 0, 2))
	assert state.stage == Stage.Model
	matter.realize(state, Stage.Position)
	assert np.array(arm.get_body_origin_location(state)) == approx([0, 0, 2])
	assert arm.get_inboard_frame(state) == translate(vec3(0, 0, 2))
	# the default is untouched
	assert arm.get_default_inboard_frame() == mat4()
	arm.set_outboard_frame(state, vec3(1, 0, 0))
	matter.realize(state, Stage.Position)
	assert np.array(arm.get_body_origin_location(state)) == approx([-1, 0, 2])

def test_mobilizer_responses():
	matter = planar_arm([1, 1])
	body = matter.bodies[2]
	state = matter.default_state()
	body.set_q(state, [0.3])
	body.set_u(state, [2.])
	state.set_udot([0, 5.])
	matter.realize(state)
	assert body.get_mobilizer_transform(state) == rotate(0.3, Z)
	assert body.get_mobilizer_velocity(state).array() == approx([0, 0, 2, 0, 0, 0])
	assert body.get_mobilizer_acceleration(state).array() == approx([0, 0, 5, 0, 0, 0])
	assert body.get_one_u(state, 0) == 2.

def test_coincident_points_distance():
	matter = Matter()
	a = matter.add_body(matter.ground, mobilizers.Translation())
	b = matter.add_body(matter.ground, mobilizers.Translation())
	state = matter.default_state()
	a.set_u(state, [1, 2, 2])
	b.set_u(state, [0, 0, 0])
	matter.realize(state)
	assert b.calc_point_to_point_distance(state, O, a, O) == 0
	assert b.calc_fixed_point_to_point_distance_time_derivative(state, O, a, O) == approx(3)
	# acceleration along the relative velocity
	state.set_udot([0, 0, 3, 0, 0, 0])
	matter.realize(state)
	assert b.calc_fixed_point_to_point_distance_2nd_time_derivative(state, O, a, O) == approx(2)
	# no relative velocity
	a.set_u(state, [0, 0, 0])
	state.set_udot([0, 3, 4, 0, 0, 0])
	matter.realize(state)
	assert b.calc_fixed_point_to_point_distance_time_derivative(state, O, a, O) == 0
	assert b.calc_fixed_point_to_point_distance_2nd_time_derivative(state, O, a, O) == approx(5)

def test_distance_derivatives():
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state)
	step = 1e-6
	a, b = matter.bodies[3], matter.bodies[5]
	pa, pb = vec3(0.1, 0.5, 0), vec3(-0.2, 0, 0.4)
	def distance(t):
		return b.calc_point_to_point_distance(moved(matter, state, t), pb, a, pa)
	def speed(t):
		return b.calc_fixed_point_to_point_distance_time_derivative(moved(matter, state, t), pb, a, pa)
	assert b.calc_fixed_point_to_point_distance_time_derivative(state, pb, a, pa) == approx(
		(distance(step) - distance(-step)) / (2*step), abs=1e-5)
	assert b.calc_fixed_point_to_point_distance_2nd_time_derivative(state, pb, a, pa) == approx(
		(speed(step) - speed(-step)) / (2*step), abs=1e-5)

def test_moving_points_not_implemented():
	matter = planar_arm([1])
	body = matter.bodies[1]
	state = matter.realize(matter.default_state())
	with pytest.raises(NotImplementedError):
		body.calc_body_moving_point_velocity_in_body(state, O, X, matter.ground)
	with pytest.raises(NotImplementedError):
		body.calc_body_moving_point_acceleration_in_body(state, O, X, Y, matter.ground)
	with pytest.raises(NotImplementedError):
		body.calc_moving_point_to_point_distance_time_derivative(state, O, X, matter.ground, O, Y)
	with pytest.raises(NotImplementedError):
		body.calc_moving_point_to_point_distance_2nd_time_derivative(state, O, X, Y, matter.ground, O, Y, Z)

def test_mass_properties():
	matter = Matter()
	mass = MassProperties.point(2., vec3(1, 0, 0))
	arm = matter.add_body(matter.ground, mobilizers.Pin(), mass=mass)
	state = matter.default_state()
	arm.set_q(state, [pi/2])
	arm.set_u(state, [3.])
	matter.realize(state, Stage.Velocity)

	assert np.array(arm.locate_body_mass_center_on_ground(state)) == approx([0, 1, 0], abs=1e-12)
	# the mass center moves at 3 along -x
	momentum = arm.calc_body_momentum_about_body_mass_center_in_ground(state)
	assert np.array(momentum.linear) == approx([-6, 0, 0], abs=1e-12)
	assert np.array(momentum.angular) == approx([0, 0, 0], abs=1e-12)
	momentum = arm.calc_body_momentum_about_body_origin_in_ground(state)
	assert np.array(momentum.linear) == approx([-6, 0, 0], abs=1e-12)
	assert np.array(momentum.angular) == approx([0, 0, 6], abs=1e-12)

	assert arm.calc_body_spatial_inertia_matrix_in_ground(state)[3:,3:] == approx(2*np.eye(3))
	assert np.isinf(np.diag(matter.ground.calc_body_spatial_inertia_matrix_in_ground(state))).all()
	assert matter.ground.mass.is_infinite()
	assert matter.ground.calc_body_momentum_about_body_origin_in_ground(state) == SpatialVec()
	assert matter.ground.calc_body_momentum_about_body_mass_center_in_ground(state) == SpatialVec()
	assert not np.isnan(np.array(matter.ground.calc_body_inertia_about_body_point(state, arm, vec3(1, 0, 0)))).any()
	assert arm.calc_body_mass_properties_in_body(state, matter.ground).mass == 2
	assert np.array(arm.calc_body_mass_center_location_in_body(state, matter.ground)) == approx([0, 1, 0], abs=1e-12)
	inertia = arm.calc_body_inertia_about_body_point(state, matter.ground, vec3(0, 1, 0))
	assert np.array(inertia) == approx(np.zeros((3,3)), abs=1e-12)
	assert np.array(arm.calc_body_central_inertia(state)) == approx(np.zeros((3,3)), abs=1e-12)

def test_generalized_forces_power():
	''' the generalized forces of body forces give the same power as the forces on the bodies '''
	matter = spatial_chain()
	state = matter.default_state()
	randomize(matter, state)
	matter.realize(state, Stage.Velocity)
	forces = [SpatialVec(vec3(np.random.normal(size=3)), vec3(np.random.normal(size=3)))  for body in matter.bodies]
	mobility = np.random.normal(size=matter.get_num_u(state))
	generalized = matter.calc_generalized_forces(state, forces, mobility)
	expected = sum(power(force, body.get_body_velocity(state))  for force, body in zip(forces, matter.bodies))
	assert generalized @ state.get_u() == approx(expected + mobility @ state.get_u())

def test_force_helpers():
	matter = planar_arm([1])
	arm = matter.bodies[1]
	state = matter.default_state()
	arm.set_q(state, [pi/2])
	matter.realize(state, Stage.Position)
	forces = [SpatialVec()  for body in matter.bodies]
	mobility = np.zeros(matter.get_num_u(state))
	arm.apply_force_to_body_point(state, vec3(1, 0, 0), vec3(-1, 0, 0), forces)
	arm.apply_body_torque(state, vec3(0, 0, 0.5), forces)
	arm.apply_one_mobility_force(state, 0, 0.25, mobility)
	assert np.array(forces[1].angular) == approx([0, 0, 1.5], abs=1e-12)
	assert np.array(forces[1].linear) == approx([-1, 0, 0])
	assert matter.calc_generalized_forces(state, forces, mobility) == approx([1.75])
	with pytest.raises(IndexError):
		arm.apply_one_mobility_force(state, 1, 0.25, mobility)
	with pytest.raises(IndexError):
		arm.apply_one_mobility_force(state, -1, 0.25, mobility)

def test_state_of_other_matter():
	''' a state realized for a matter cannot be read through an other matter of the same shape '''
	first, second = planar_arm([1]), planar_arm([2])
	state = first.default_state()
	first.bodies[1].set_q(state, [0.5])
	first.realize(state, Stage.Position)
	with pytest.raises(StageViolation):
		second.bodies[1].get_body_transform(state)
	with pytest.raises(StageViolation):
		second.bodies[1].get_q(state)
	# the other matter restarts it from scratch
	second.realize(state, Stage.Position)
	assert second.bodies[1].get_q(state) == approx([0])
	with pytest.raises(StageViolation):
		first.bodies[1].get_body_transform(state)

def test_one_coordinate():
	matter = spatial_chain()
	ground, a, b, c, d, e = matter.bodies
	state = matter.default_state()
	b.set_one_q(state, 1, 0.3)
	assert b.get_one_q(state, 1) == 0.3
	assert state.stage == Stage.Model
	d.set_one_u(state, 2, -1.5)
	assert d.get_one_u(state, 2) == -1.5
	with pytest.raises(IndexError):
		b.set_one_q(state, 3, 0.)
	with pytest.raises(IndexError):
		d.set_one_u(state, 3, 0.)
	with pytest.raises(IndexError):
		ground.set_one_q(state, 0, 0.)

	randomize(matter, state)
	matter.realize(state)
	for body in matter.bodies[1:]:
		qdot, qdotdot, udot = body.get_qdot(state), body.get_qdotdot(state), body.get_udot(state)
		for k in range(len(qdot)):
			assert body.get_one_qdot(state, k) == approx(qdot[k])
			assert body.get_one_qdotdot(state, k) == approx(qdotdot[k])
		for k in range(len(udot)):
			assert body.get_one_udot(state, k) == approx(udot[k])

def test_fit_coordinates():
	matter = Matter()
	free = matter.add_body(matter.ground, mobilizers.Free())
	pin = matter.add_body(free, mobilizers.Pin())
	slider = matter.add_body(pin, mobilizers.Slider())
	gimbal = matter.add_body(slider, mobilizers.Gimbal())
	state = matter.default_state()

	target = translate(vec3(1, 2, 3)) * rotate(0.4, normalize(vec3(1, 1, 0)))
	free.set_q_to_fit_transform(state, target)
	pin.set_q_to_fit_rotation(state, rotate(0.7, Z))
	slider.set_q_to_fit_translation(state, vec3(0.5, 1, 0))
	reachable = gimbal.mobilizer.calc_transform(np.array([0.3, -0.2, 0.5]))
	gimbal.set_q_to_fit_transform(state, reachable)
	matter.realize(state, Stage.Position)
	assert np.array(free.get_mobilizer_transform(state)) == approx(np.array(target))
	assert pin.get_q(state) == approx([0.7])
	# only the reachable part of the translation is kept
	assert slider.get_q(state) == approx([0.5])
	assert np.array(gimbal.get_mobilizer_transform(state)) == approx(np.array(reachable), abs=1e-8)

	pin.set_u_to_fit_angular_velocity(state, vec3(0, 0, 2))
	slider.set_u_to_fit_linear_velocity(state, vec3(3, 1, 0))
	free.set_u_to_fit_velocity(state, SpatialVec(vec3(1, 2, 3), vec3(4, 5, 6)))
	assert pin.get_u(state) == approx([2])
	assert slider.get_u(state) == approx([3])
	assert free.get_u(state) == approx([1, 2, 3, 4, 5, 6])
	free.set_u_to_fit_linear_velocity(state, vec3(0, 0, 1))
	assert free.get_u(state) == approx([1, 2, 3, 0, 0, 1])
	free.set_u_to_fit_angular_velocity(state, vec3(0, 0, 0))
	assert free.get_u(state) == approx([0, 0, 0, 0, 0, 1])
