from registry_viewer.tests.fixtures_clients import *  # noqa
from registry_viewer.tests.fixtures_registry import *  # noqa
