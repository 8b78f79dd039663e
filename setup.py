#! python
# coding: utf-8

from setuptools import setup

setup(
    name='arcgateway',
    version='1.0',
    description="Asynchronous gateway to the ArcGIS Server and Portal REST APIs",
    long_description="""Builds request urls, manages tokens, sends requests and returns typed results for the ArcGIS REST API, and can walk a site to list its services""",
    author="Esri",
    author_email="jscheirer@esri.com",
    platforms="any",
    license="Apache Software License",
    packages=['arcgateway'],
    python_requires='>=3.10',
    install_requires=['httpx>=0.23'],
    extras_require={'test': ['pytest']},
    entry_points={
        'console_scripts': [
            'arcgateway-describesite = arcgateway.cmdline:describesite',
            'arcgateway-ping = arcgateway.cmdline:ping',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Environment :: Web Environment',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3',
        'Framework :: AsyncIO',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: Utilities'
    ]
)
