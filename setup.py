# type: ignore
from setuptools import find_packages, setup, Command

# Get VERSION constant from expclient.version - we can't simply import that module because
# expclient/__init__.py imports all kinds of stuff that requires dependencies we may not have
# loaded yet. Based on https://packaging.python.org/guides/single-sourcing-package-version/
version_module_globals = {}
with open('./expclient/version.py') as f:
    exec(f.read(), version_module_globals)
expclient_version = version_module_globals['VERSION']


def parse_requirements(filename):
    """ load requirements from a pip requirements file """
    lineiter = (line.strip() for line in open(filename))
    return [line for line in lineiter if line and not line.startswith("#")]


install_reqs = parse_requirements('requirements.txt')
test_reqs = parse_requirements('test-requirements.txt')

# reqs is a list of requirement
# e.g. ['mmh3>=4.0', 'semver>=2.10.2']
reqs = [ir for ir in install_reqs]
testreqs = [ir for ir in test_reqs]


class PyTest(Command):
    user_options = []

    def initialize_options(self):
        pass

    def finalize_options(self):
        pass

    def run(self):
        import sys
        import subprocess
        errno = subprocess.call([sys.executable, '-m', 'pytest', 'expclient/testing'])
        raise SystemExit(errno)


setup(
    name='expclient-sdk',
    version=expclient_version,
    packages=find_packages(include=['expclient', 'expclient.*']),
    description='Experimentation and feature flag decision SDK for Python',
    long_description='Experimentation and feature flag decision SDK for Python',
    install_requires=reqs,
    python_requires='>=3.8',
    classifiers=[
        'Intended Audience :: Developers',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development',
        'Topic :: Software Development :: Libraries',
    ],
    extras_require={
        "test": testreqs,
    },
    cmdclass={'test': PyTest},
)
