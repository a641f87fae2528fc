import pytest

from prover.app.attestation.backend import load_backend
from prover.app.errors import ConfigurationError
from prover.tests.fixtures.fake_backend import FakeAttestationBackend
from prover.tests.helpers import FAKE_BACKEND_PATH, make_settings


def test_loads_factory_from_import_path(tmp_path):
    settings = make_settings(tmp_path)

    backend = load_backend(FAKE_BACKEND_PATH, settings)

    assert isinstance(backend, FakeAttestationBackend)


@pytest.mark.parametrize(
    "import_path, message",
    [
        ("no_separator", "must be 'module:factory'"),
        (":create_backend", "must be 'module:factory'"),
        ("prover.tests.fixtures.missing_module:x", "cannot be imported"),
        ("prover.tests.fixtures.fake_backend:NOTARY_KEY", "is not callable"),
        ("prover.tests.fixtures.fake_backend:absent", "is not callable"),
    ],
)
def test_bad_import_paths_are_configuration_errors(tmp_path, import_path, message):
    with pytest.raises(ConfigurationError, match=message):
        load_backend(import_path, make_settings(tmp_path))
