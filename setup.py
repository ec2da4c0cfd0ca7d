from setuptools import setup, find_packages
import codecs
import os

here = os.path.abspath(os.path.dirname(__file__))

with codecs.open(os.path.join(here, "README.md"), encoding="utf-8") as fh:
    long_description = "\n" + fh.read()

VERSION = '0.1.0'
DESCRIPTION = 'Procedural mesh building and glTF 2.0 export'

# Setting up
setup(
    name="gltfmesh",
    version=VERSION,
    description=DESCRIPTION,
    long_description_content_type="text/markdown",
    long_description=long_description,
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
    entry_points={'console_scripts': ['gltfmesh=gltfmesh.__main__:main']},
    keywords=['python', 'three dimensional', 'gltf', 'glb', 'mesh', '3d'],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Topic :: Multimedia :: Graphics :: 3D Modeling",
        "Operating System :: OS Independent",
    ]
)
