#!/usr/bin/env python
from setuptools import setup, find_packages
from treegrid import __version__


with open('README.md') as fh:
    long_description = fh.read()


setup_args = dict(
    name='django-treegrid',
    version=__version__,
    license='Apache License 2.0',
    packages=find_packages(exclude=['docs', 'tests', 'tests.*']),
    include_package_data=True,
    description='Editable hierarchical grids for Django',
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=[
        'Django>=4.2',
        'httpx>=0.24',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-django>=4.5',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Environment :: Web Environment',
        'Framework :: Django',
        'Framework :: Django :: 4.2',
        'Framework :: Django :: 5.0',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Topic :: Software Development :: Libraries',
        'Topic :: Utilities'])


if __name__ == '__main__':
    setup(**setup_args)
