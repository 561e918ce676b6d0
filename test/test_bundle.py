import io
import zipfile

from troposphere_workload_domains.bundle import build_bundle, bundle_modules, minify_module, write_bundle

LAMBDA_ZIP_LIMIT = 50 * 1024 * 1024


def test_every_module_is_bundled():
    modules = bundle_modules()

    assert modules[0] == '__init__'
    for name in ['collector', 'deadline', 'domains', 'errors', 'handlers', 'plan', 'properties', 'providers', 'records', 'response', 'validator']:
        assert name in modules


def test_bundle_compiles():
    with zipfile.ZipFile(io.BytesIO(build_bundle())) as bundle:
        names = bundle.namelist()
        assert names == [f'workload_domains/{name}.py' for name in bundle_modules()]

        for name in names:
            compile(bundle.read(name).decode(), name, 'exec')


def test_bundle_is_reproducible():
    bundle = build_bundle()

    assert bundle == build_bundle()
    assert len(bundle) < LAMBDA_ZIP_LIMIT


def test_minified_module_keeps_namedtuple_fields():
    minified = minify_module('properties')

    assert 'record_change_delay:' in minified
    assert 'deadline_margin:' in minified


def test_write_bundle(tmp_path):
    path = write_bundle(str(tmp_path / 'dist' / 'workload_domains.zip'))

    with open(path, 'rb') as f:
        assert f.read() == build_bundle()
