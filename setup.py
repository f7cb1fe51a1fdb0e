#!/usr/bin/env python

import setuptools

name = 'notifyserv'
description = 'Relay text from local sockets into IRC channels'

params = dict(
    name=name,
    version='1.0.0',
    author="Christoph Mende",
    description=description or name,
    packages=setuptools.find_packages(),
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'jaraco.collections',
        'jaraco.text',
        'jaraco.logging',
        'jaraco.functools>=1.20',
        'jaraco.stream',
        'more_itertools',
        'tempora>=1.6',
    ],
    extras_require={
        'testing': [
            'pytest>=3.5,!=3.7.3',
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Environment :: No Input/Output (Daemon)",
        "Intended Audience :: System Administrators",
        "Topic :: Communications :: Chat :: Internet Relay Chat",
        "Programming Language :: Python :: 3",
    ],
    entry_points={
        'console_scripts': [
            'notifyserv = notifyserv.__main__:main',
        ],
    },
)
if __name__ == '__main__':
    setuptools.setup(**params)
