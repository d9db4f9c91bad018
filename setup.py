from setuptools import setup, find_packages

setup(
    name='Pathly',
    version='1.0.0',
    author='Dinesh RVL',
    author_email='swat.github@gmail.com',
    description='JSONPath queries with a pluggable aggregate-function table, plus a Base64/Base64URL codec.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    url='https://github.com/swattoolchain/pathly',
    packages=find_packages(exclude=['tests', 'tests.*']),
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Libraries',
        'Topic :: Software Development :: Testing'
    ],
    python_requires='>=3.8',
    install_requires=['requests'],
    extras_require={
        'test': ['pytest']
    }
)
