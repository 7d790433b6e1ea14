"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from pathlib import Path

import pytest

_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

for module_name in list(sys.modules.keys()):
    if module_name.startswith("classlens"):
        del sys.modules[module_name]

from _classfile import (  # noqa: E402
    ACC_FINAL,
    ACC_PRIVATE,
    ACC_PUBLIC,
    ACC_STATIC,
    Call,
    ClassBuilder,
)

CONTROLLER = "Lorg/springframework/web/bind/annotation/RestController;"
SERVICE = "Lorg/springframework/stereotype/Service;"
GET_MAPPING = "Lorg/springframework/web/bind/annotation/GetMapping;"


@pytest.fixture
def user_controller_bytes() -> bytes:
    """A REST controller whose handler records no invocations."""
    b = ClassBuilder("com/acme/web/UserController")
    b.annotate(CONTROLLER)
    b.field(
        "userService", "Lcom/acme/service/UserService;", ACC_PRIVATE | ACC_FINAL
    )
    b.method("getUsers", "()Ljava/util/List;", annotations={GET_MAPPING: {"value": ["/users"]}})
    return b.build()


@pytest.fixture
def user_service_bytes() -> bytes:
    b = ClassBuilder("com/acme/service/UserService")
    b.annotate(SERVICE)
    b.method("findAll", "()Ljava/util/List;")
    return b.build()


@pytest.fixture
def app_bytes() -> bytes:
    """A main class calling into a helper, with debug info."""
    b = ClassBuilder("com/acme/App")
    b.source_file = "App.java"
    b.method(
        "main",
        "([Ljava/lang/String;)V",
        ACC_PUBLIC | ACC_STATIC,
        calls=[Call("com/acme/App", "run", "()V", opcode=0xB8)],
        local_variables=[(0, "args")],
        line_numbers=[(0, 7)],
    )
    b.method("run", "()V", ACC_PRIVATE | ACC_STATIC)
    return b.build()
