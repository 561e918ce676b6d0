"""
Build the lambda deployment bundle

The bundle is a zip of the ``workload_domains`` package with every module minified.
Upload it to S3 and pass its location as the WorkloadDomainsCodeBucket and WorkloadDomainsCodeKey
template parameters.

"""

import io
import os.path
import pkgutil
import zipfile

import python_minifier

import workload_domains

PACKAGE = 'workload_domains'

# Fixed timestamp so the same source always produces the same bundle
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def bundle_modules():
    """The names of the modules that go in the bundle, including the package itself"""

    return ['__init__'] + sorted(module.name for module in pkgutil.iter_modules(workload_domains.__path__))


def minify_module(name):
    source = pkgutil.get_data(PACKAGE, name + '.py').decode()

    # NamedTuple fields are annotations, so they must stay
    return python_minifier.minify(
        source,
        filename=name + '.py',
        remove_annotations=False,
        remove_literal_statements=True,
    )


def build_bundle() -> bytes:
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as bundle:
        for name in bundle_modules():
            info = zipfile.ZipInfo(f'{PACKAGE}/{name}.py', date_time=ZIP_DATE_TIME)
            info.external_attr = 0o644 << 16
            bundle.writestr(info, minify_module(name), compress_type=zipfile.ZIP_DEFLATED)

    return buffer.getvalue()


def write_bundle(path):
    """
    Write the bundle to a file

    :param str path: The zip file to write. Missing directories are created.
    :returns: The path written to

    """

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, 'wb') as f:
        f.write(build_bundle())

    return path
