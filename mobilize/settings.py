'''	 The settings module holds dictionaries for each aspect of the mobilize library.

dictionaries:
	:numeric:	tolerances and steps used by numerical computations
'''

import sys, os, yaml
from os.path import dirname, exists

# settings for numerical computations
numeric = {
	'precision': 1e-10,	# tolerance used to consider a quantity null in derived computations
	'finite_difference': 1e-7,	# step for finite differentiation, when no analytic derivative is given
	'quaternion_drift': 1e-6,	# above this deviation of a quaternion norm from 1, a warning is issued
	}


# get configuration directory depending on OS
if sys.platform == 'win32':
	home = os.getenv('USERPROFILE') or '.'
	configdir = home+'/AppData/Local'
else:
	home = os.getenv('HOME') or '.'
	configdir = home+'/.config'

config = configdir+'/mobilize/mobilize.yaml'
settings = {'numeric':numeric}


def install():
	''' Create and fill the config directory if not already existing '''
	if not exists(config):
		os.makedirs(dirname(config), exist_ok=True)
		dump()

def clean():
	''' Delete the default configuration file '''
	os.remove(config)

def load(file=None):
	''' Load the settings directly in this module, from the specified file or the default one '''
	if not file:	file = config
	if isinstance(file, str):
		with open(file, 'r') as stream:
			changes = yaml.safe_load(stream)
	else:
		changes = yaml.safe_load(file)
	def update(dst, src):
		for key in dst:
			if key in src:
				if isinstance(dst[key], dict) and isinstance(src[key], dict):
					update(dst[key], src[key])
				else:
					dst[key] = type(dst[key])(src[key])
	update(settings, changes or {})

def dump(file=None):
	''' Write the current settings into the specified file or to the default one '''
	if not file:	file = config
	text = yaml.dump(settings, default_flow_style=None, width=40, indent=4)
	if isinstance(file, str):
		with open(file, 'w') as stream:
			stream.write(text)
	else:
		file.write(text)


# automatically load settings in the file exist
try:	load()
except FileNotFoundError:	pass
