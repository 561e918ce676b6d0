import os.path
from setuptools import setup, find_packages

readme_path = os.path.join(os.path.abspath(os.path.dirname(__file__)), 'README.md')
with open(readme_path) as f:
    long_desc = f.read()

setup(
    name='troposphere-workload-domains',
    description='Cloudformation custom resources for workload aliases and DNS validated certificates',
    version='0.1.0',
    license='MIT',
    keywords='cloudformation troposphere certificate route53 alias',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    long_description=long_desc,
    long_description_content_type='text/markdown',
    python_requires='>=3.9',
    install_requires=['troposphere', 'awacs', 'wrapt', 'python_minifier >= 2.9.0', 'boto3'],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=False
)
