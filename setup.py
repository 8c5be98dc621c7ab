#!/usr/bin/env python
# -*- coding: UTF-8 -*-

from setuptools import setup

setup(
    name='ModelBasedGeneSetAnalysis',
    version='1.0a1',
    author='Christopher D. Lasher',
    author_email='chris.lasher@gmail.com',
    install_requires=[
        'networkx>=2.0',
        'numpy',
        'scipy>=1.0'
    ],
    extras_require={
        'test': ['pytest']
    },
    packages=['mgsa', 'mgsa.mcmc', 'mgsa.tests'],
    python_requires='>=3.6',
    license='MIT License',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering :: Bio-Informatics'
    ],
    description=("Identify the terms that best explain a study set of "
            "genes by model-based gene set analysis."),
    long_description=open('README.rst').read(),
)
