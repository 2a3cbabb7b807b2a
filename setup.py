import setuptools

from os import scandir

def scan_packages(path, prefix=None):
    if prefix is None:
        prefix = ''

    for entry in scandir(path):
        if entry.is_dir(follow_symlinks=False) and \
           entry.name[0] != '.' and \
           entry.name not in ['__pycache__']:
            yield prefix+entry.name
            yield from scan_packages(entry.path, prefix= prefix+entry.name+'.')


setuptools.setup(
    name="permnn",
    version="2020.11.100",
    description="Lightweight N-dimensional axis permutation layer with exact inverse for gradients",
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
    include_package_data=True,
    long_description="",
    packages=['permnn', *scan_packages('permnn', prefix='permnn.')],
    license = 'MIT',
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering",
    ],
    python_requires='>=3.6',
)
