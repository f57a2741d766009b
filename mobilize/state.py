# This file is part of pymobilize,  distributed under license LGPL v3

''' This module defines the realization stages and the `State` holding the variables and the cache of a multibody system.

	A `State` is a passive container: it doesn't know how to compute anything, `Matter.realize` fills it. What it guarantees is the stage discipline:

	- the stage marker only moves upward one stage at a time
	- modifying a variable of stage S brings the marker back below S and drops every cached quantity of stage S and above
	- reading a cached quantity tagged with a stage above the marker raises `StageViolation` instead of returning stale data

	A state is a value, not a view: two systems or two threads should never share one. Use `State.clone()` to get an independent copy.
'''

from enum import IntEnum
from copy import deepcopy
import numpy as np

__all__ = ['Stage', 'State', 'StageViolation', 'DimensionMismatch']


class StageViolation(Exception):
	''' raised when a quantity is read or written at a realization stage it is not available for '''
	pass

class DimensionMismatch(ValueError):
	''' raised when a vector or matrix given to the system doesn't have the expected size '''
	pass


class Stage(IntEnum):
	''' ordered computation checkpoints, each one requires all the previous ones '''
	Empty = 0
	Topology = 1
	Model = 2
	Instance = 3
	Time = 4
	Position = 5
	Velocity = 6
	Dynamics = 7
	Acceleration = 8

	def next(self) -> 'Stage':
		return Stage(self + 1)

	def prev(self) -> 'Stage':
		return Stage(self - 1)


class State:
	''' Variables and cached quantities of a multibody system at one instant

		Attributes:
			stage:         the highest realized stage
			generation:    topology generation of the matter this state was realized against, None when never realized
			time (float):  simulation time, a Time stage variable
			model (dict):  Model stage variables, keyed by `(component id, name)`
			instance (dict):  Instance stage variables, keyed by `(component id, name)`

		The generalized coordinates, speeds, speeds derivatives and constraint multipliers are numpy arrays allocated by the Topology stage realization. Use the getters and setters to access them, setters invalidate the stages depending on the variable.
	'''
	def __init__(self):
		self._stage = Stage.Empty
		self.generation = None
		self.time = 0.
		self._q = np.empty(0)
		self._u = np.empty(0)
		self._udot = np.empty(0)
		self._multipliers = np.empty(0)
		self.model = {}
		self.instance = {}
		self._cache = {}

	@property
	def stage(self) -> Stage:
		return self._stage

	def get_stage(self) -> Stage:
		return self._stage

	def advance(self, stage):
		''' mark the given stage as realized, it must be the stage following the current one '''
		stage = Stage(stage)
		if stage != self._stage + 1:
			raise StageViolation('cannot realize stage {} from stage {}, stages must be realized one at a time'.format(
				stage.name, self._stage.name))
		self._stage = stage

	def invalidate(self, stage):
		''' bring the stage marker below the given stage and drop all the cached quantities depending on it '''
		stage = Stage(stage)
		if stage == Stage.Empty:
			raise ValueError('the Empty stage cannot be invalidated')
		if self._stage >= stage:
			self._stage = stage.prev()
		for key in [key  for key, (tag, _) in self._cache.items()  if tag >= stage]:
			del self._cache[key]

	def require(self, stage, what=None):
		''' raise `StageViolation` if the given stage is not realized '''
		if self._stage < stage:
			raise StageViolation('{} requires stage {} but the state is only realized to {}'.format(
				what or 'this operation', Stage(stage).name, self._stage.name))

	def cache(self, key, stage, value):
		''' store a derived quantity, valid from the given stage '''
		self._cache[key] = (Stage(stage), value)
		return value

	def cached(self, key):
		''' retreive a derived quantity, its stage must have been realized '''
		try:
			stage, value = self._cache[key]
		except KeyError:
			raise StageViolation('{} has not been computed, realize the state first'.format(key))
		self.require(stage, repr(key))
		return value

	def iscached(self, key) -> bool:
		''' True if the given quantity is available '''
		entry = self._cache.get(key)
		return entry is not None and entry[0] <= self._stage

	def allocate(self, nq, nu, nmultipliers=0):
		''' reserve the state variables, only meant for the Topology stage realization '''
		self._q = np.zeros(nq)
		self._u = np.zeros(nu)
		self._udot = np.zeros(nu)
		self._multipliers = np.zeros(nmultipliers)
		self.model.clear()
		self.instance.clear()
		self._cache.clear()

	def _assign(self, current, value, name):
		value = np.asarray(value, float).ravel()
		if value.shape != current.shape:
			raise DimensionMismatch('{} must have {} components, not {}'.format(name, current.size, value.size))
		current[:] = value

	def get_time(self) -> float:
		return self.time

	def set_time(self, time):
		self.time = float(time)
		self.invalidate(Stage.Time)

	def get_q(self) -> np.ndarray:
		''' all generalized coordinates (copy) '''
		self.require(Stage.Topology, 'q')
		return self._q.copy()

	def set_q(self, q):
		self.require(Stage.Topology, 'q')
		self._assign(self._q, q, 'q')
		self.invalidate(Stage.Position)

	def get_u(self) -> np.ndarray:
		''' all generalized speeds (copy) '''
		self.require(Stage.Topology, 'u')
		return self._u.copy()

	def set_u(self, u):
		self.require(Stage.Topology, 'u')
		self._assign(self._u, u, 'u')
		self.invalidate(Stage.Velocity)

	def get_udot(self) -> np.ndarray:
		''' all generalized speeds derivatives (copy) '''
		self.require(Stage.Topology, 'udot')
		return self._udot.copy()

	def set_udot(self, udot):
		self.require(Stage.Topology, 'udot')
		self._assign(self._udot, udot, 'udot')
		self.invalidate(Stage.Acceleration)

	def get_multipliers(self) -> np.ndarray:
		''' all constraint multipliers (copy), in the layout defined at Instance stage '''
		self.require(Stage.Topology, 'multipliers')
		return self._multipliers.copy()

	def set_multipliers(self, multipliers):
		''' set the constraint multipliers computed by an external solver '''
		self.require(Stage.Instance, 'multipliers')
		self._assign(self._multipliers, multipliers, 'multipliers')
		self.invalidate(Stage.Acceleration)

	def set_q_slice(self, start, values):
		''' set a contiguous part of q, used by the per-body setters '''
		self.require(Stage.Topology, 'q')
		values = np.asarray(values, float).ravel()
		self._q[start:start+values.size] = values
		self.invalidate(Stage.Position)

	def set_u_slice(self, start, values):
		''' set a contiguous part of u, used by the per-body setters '''
		self.require(Stage.Topology, 'u')
		values = np.asarray(values, float).ravel()
		self._u[start:start+values.size] = values
		self.invalidate(Stage.Velocity)

	def resize_multipliers(self, size):
		''' resize the multipliers vector when the equation layout changes, only meant for the Instance stage realization '''
		if self._multipliers.size != size:
			self._multipliers = np.zeros(size)

	def set_model_variable(self, key, value):
		''' change a Model stage variable '''
		self.require(Stage.Topology, repr(key))
		self.model[key] = value
		self.invalidate(Stage.Model)

	def set_instance_variable(self, key, value):
		''' change an Instance stage variable '''
		self.require(Stage.Model, repr(key))
		self.instance[key] = value
		self.invalidate(Stage.Instance)

	def clone(self) -> 'State':
		''' independent copy of this state, including its cache '''
		return deepcopy(self)

	def __repr__(self):
		return '<{} stage={} nq={} nu={}>'.format(self.__class__.__name__, self._stage.name, self._q.size, self._u.size)
