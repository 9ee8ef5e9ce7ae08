from setuptools import setup, find_namespace_packages

setup(
    name='atmfjstc-drs-file',
    version='1.0.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['atmfjstc.*']),

    install_requires=[
        'atmfjstc-binary-utils>=1.2, <2',
        'atmfjstc-file-utils>=1.2, <3',
        'atmfjstc-cli-utils>=1.8, <2',
    ],

    entry_points={
        'console_scripts': [
            'drs-tool=atmfjstc.lib.drs_file.cli:main',
        ],
    },

    zip_safe=True,

    description="Interface for reading DRS resource archives used by the Genie engine",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: System :: Archiving",
        "Typing :: Typed",
    ],
    python_requires='>=3.7',
)
