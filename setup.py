#!/usr/bin/env python
from setuptools import setup

requires =  ['pymongo>=4.3', 'docopt>=0.6', 'safeoutput>=2.0,<3; python_version<"3.12"', 'safeoutput>=2.0; python_version>="3.12"']
test_requires = requires + ['pytest']

setup(
    name='BsonSplit',
    version='1.0.0',
    author='Andrew Thomson',
    author_email='athomsonguy@gmail.com',
    packages=['bsonsplit'],
    install_requires = requires,
    extras_require = {'test': test_requires},
    entry_points = {
      'console_scripts': [
        'bsonsplit = bsonsplit.ui:split_main',
        ],
    },
    description='Split a BSON dump round-robin into several BSON files',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
