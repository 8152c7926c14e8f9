from setuptools import setup, find_packages
from os.path import dirname, join
import io

with open('README.md', encoding='utf-8') as readme_file:
    readme = readme_file.read()

def get_version(relpath):
    """Read version info from a file without importing it."""
    for line in io.open(join(dirname(__file__), relpath), encoding="utf-8"):
        if line.startswith("__version__"):
            return line.split("=")[1].strip().strip("'\"")

setup(
    name='coocnet',
    version=get_version("coocnet/__init__.py"),
    description='Signed co-occurrence networks of organisms from abundance tables',
    long_description=readme,
    long_description_content_type='text/markdown',
    url="https://github.com/bcoltman/coocnet",
    author='Ben Coltman',
    license='GPL3+',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)',
        'Programming Language :: Python :: 3',
    ],
    keywords="microbiome co-occurrence network correlation bioinformatics",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'pandas>=1.0',
        'numpy>=1.17',
        'scipy>=1.0',
        'networkx>=2.5',
        'statsmodels>=0.12',
        'tqdm>=4.0',
    ],
    extras_require={
        'test': ['pytest>=6.0'],
    },
    entry_points={
        'console_scripts': [
            'coocnet = coocnet.__main__:main'
        ]
    },
)
