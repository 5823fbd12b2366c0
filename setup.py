import setuptools
from mtkbootimg import mtkbootimg_version

setuptools.setup(
    name="mtkbootimg",
    version=mtkbootimg_version,
    author="The mtkbootimg authors",
    description=("Boot image creation for MT65xx bootloaders"),
    license="Apache Software License",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires='>=3.8',
    install_requires=[
        'click',
        'intelhex>=2.2.1',
        'PyYAML',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        "console_scripts": [
            "mtkbootimg=mtkbootimg.main:mtkbootimg",
            "mkbootimg=mtkbootimg.main:create",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: Apache Software License",
    ],
)
