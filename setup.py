import setuptools

setuptools.setup(
    name="otatool",
    version="1.0.0",
    author="The otatool commiters",
    description=("Zigbee OTA upgrade image inspection and header editing"),
    license="Apache Software License",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        'click',
        'intelhex>=2.2.1',
        'PyYAML>=5.1',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        "console_scripts": ["otatool=otatool.main:otatool"]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: Apache Software License",
    ],
)
