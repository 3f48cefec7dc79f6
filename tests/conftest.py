import pytest


@pytest.fixture(params=["asyncio", "trio"])
def anyio_backend(request):
    """Run every ``@pytest.mark.anyio`` test on both backends."""
    return request.param
