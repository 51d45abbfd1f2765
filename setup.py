from setuptools import setup

setup(
    name='treeinterpret',
    version='1.0',
    py_modules=[
        'class_aggregator',
        'interpret_errors',
        'interpret_params',
        'interpreter',
        'path_decomposer',
        'tree_aggregator',
        'tree_table',
    ],
    python_requires='>=3.10',
    install_requires=['numpy'],
    extras_require={'test': ['pytest', 'pandas']},
    description='Per-feature contribution breakdown of tree ensemble predictions',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
