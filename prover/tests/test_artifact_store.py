import pytest

from prover.app.attestation.artifacts import ArtifactKind, ArtifactStore
from prover.app.domain.providers import Provider
from prover.app.errors import ArtifactNotFoundError

pytestmark = pytest.mark.anyio


def test_filenames_are_deterministic(tmp_path):
    store = ArtifactStore(tmp_path)

    assert (
        store.filename(Provider.WISE, ArtifactKind.ATTESTATION, "12345")
        == "wise.12345.attestation.tlsn"
    )
    assert (
        store.filename(Provider.PAYPAL, ArtifactKind.PRESENTATION)
        == "paypal.presentation.tlsn"
    )


async def test_save_then_load(tmp_path):
    store = ArtifactStore(tmp_path / "nested")

    path = await store.save(
        Provider.WISE, ArtifactKind.SECRETS, b"\x00opaque", "12345"
    )

    assert path.endswith("wise.12345.secrets.tlsn")
    assert await store.exists(Provider.WISE, ArtifactKind.SECRETS, "12345")
    assert (
        await store.load(Provider.WISE, ArtifactKind.SECRETS, "12345")
        == b"\x00opaque"
    )


async def test_save_overwrites(tmp_path):
    store = ArtifactStore(tmp_path)

    await store.save(Provider.WISE, ArtifactKind.PRESENTATION, b"old")
    await store.save(Provider.WISE, ArtifactKind.PRESENTATION, b"new")

    assert await store.load(Provider.WISE, ArtifactKind.PRESENTATION) == b"new"


async def test_missing_artifact(tmp_path):
    store = ArtifactStore(tmp_path)

    assert not await store.exists(Provider.WISE, ArtifactKind.ATTESTATION, "1")
    with pytest.raises(ArtifactNotFoundError, match="Attestation not found at"):
        await store.load(Provider.WISE, ArtifactKind.ATTESTATION, "1")


@pytest.mark.parametrize("transaction_id", ["../escaped", "a/b", "..", "x.y"])
def test_unsafe_transaction_ids_are_rejected(tmp_path, transaction_id):
    store = ArtifactStore(tmp_path / "store")

    with pytest.raises(ValueError, match="not a safe file name part"):
        store.filename(Provider.WISE, ArtifactKind.ATTESTATION, transaction_id)


async def test_unsafe_id_writes_nothing(tmp_path):
    store = ArtifactStore(tmp_path / "store")

    with pytest.raises(ValueError):
        await store.save(
            Provider.WISE, ArtifactKind.SECRETS, b"x", "/../../escaped"
        )

    assert list(tmp_path.iterdir()) == []
