#!/usr/bin/python3

from setuptools import setup, find_packages

setup(
	# package declaration
	name='pymobilize',
	version='0.1.0',
	python_requires='>=3.8',
	install_requires=[
		'pyglm>=2.5.5',
		'numpy>=1.1',
		'scipy>=1.3',
		'pyyaml>=5',
		'arrex>=0.5',
		],
	extras_require={
		'test': ['pytest>=6'],
		},
	# source declaration
	packages=find_packages(exclude=['tests', 'tests.*']),
	package_data={
		'': ['README.md'],
		},

	# metadata for pypi
	author='Yves Dejonghe',
	author_email='jimy.byerley@gmail.com',
	description="Multibody kinematics and constraint forces library, written with Python",
	long_description=open('README.md').read(),
	long_description_content_type='text/markdown',
	license='GNU LGPL v3',
	keywords='multibody kinematic mobilizer constraint jacobian rigid body',
	classifiers=[
		'Topic :: Scientific/Engineering',
		'Development Status :: 3 - Alpha',
		'Programming Language :: Python :: 3.8',
		'Programming Language :: Python :: 3.9',
		'Programming Language :: Python :: 3.10',
		'Programming Language :: Python :: Implementation :: CPython',
		'License :: OSI Approved :: GNU Lesser General Public License v3 (LGPLv3)',
		'Intended Audience :: Science/Research',
		'Intended Audience :: Education',
		'Topic :: Scientific/Engineering :: Physics',
		],
	)
