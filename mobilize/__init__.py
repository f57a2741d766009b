# This file is part of pymobilize,  distributed under license LGPL v3

'''     pymobilize
		kinematics of articulated rigid bodies

Multibody kinematics and constraint forces library, written with Python.

main concepts
-------------

A multibody system is a tree of rigid bodies, each one attached to its parent by a joint called a mobilizer. The motion of a mobilizer is parameterized by its generalized coordinates `q` and speeds `u`. Additional equations between bodies that the tree cannot express (closed loops, prescribed motions) are given as constraints.

The library separates the structure of the system from its variables:

	- `Matter` holds the bodies and the constraints, it never changes during a simulation
	- `State` holds the variables (time, q, u, ...) and everything computed from them

The quantities are computed stage by stage. A state is first realized to `Stage.Position` to get the placement of each body, then to `Stage.Velocity` and so on. Modifying a variable invalidates the stages depending on it, so a quantity cannot be read when it is out of date.

data types
----------

math types:
* vec3         a 3D vector
* mat3, mat4   rotation and affine transformation
* SpatialVec   angular and linear components of a velocity, an acceleration or a force

multibody types:
* MobilizedBody    a body and its mobilizer
* Matter           the body tree and the constraints
* State            the variables and computed quantities

the mobilizers and the constraints have overlapping names (`Ball`, `Weld`, `Custom`), use them through their modules `mobilizers` and `constraint`.

Example
-------

	>>> matter = Matter()
	>>> arm = matter.add_body(matter.ground, mobilizers.Pin(), outboard=vec3(-1,0,0))
	>>> forearm = matter.add_body(arm, mobilizers.Pin(), inboard=vec3(1,0,0), outboard=vec3(-1,0,0))
	>>> state = matter.default_state()
	>>> arm.set_q(state, [pi/4])
	>>> matter.realize(state, Stage.Position)
	>>> forearm.locate_body_point_on_ground(state, vec3(0))
	dvec3( 2.12132, 2.12132, 0 )
'''
version = '0.1.0'

from . import settings, mathutils, state, mobilizers, body, constraint, matter

from .mathutils import *
from .state import Stage, State, StageViolation, DimensionMismatch
from .mobilizers import Mobilizer, Pin, Slider, Screw, Universal, Cylinder, Planar, Gimbal, Translation, Free
from .body import MobilizedBody
from .constraint import Constraint, ConstrainedKinematics, ConstraintForces, Rod, PointInPlane, ConstantAngle, ConstantOrientation, ConstantSpeed, ConstantAcceleration
from .matter import Matter, Subtree, TopologyError
