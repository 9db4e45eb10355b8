from setuptools import setup, find_packages

# Read requirements.txt to populate install_requires
with open('requirements.txt', 'r') as f:
    requires = [line.strip() for line in f if line.strip() and not line.startswith('#')]

setup(
    name='mel-backend',
    version='0.1.0',
    description='MEL - project management backend and admin utility',
    author='MEL developers',
    packages=find_packages(exclude=('tests', 'ci')),
    py_modules=['app', 'config', 'routes'],
    include_package_data=True,
    install_requires=requires,
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.11',
    entry_points={
        'console_scripts': [
            'mel-utility = meldb.utility:main',
        ],
    },
)
