from contract_audit.models import Endpoint
from contract_audit.scanners.controllers import ControllerIndex, extract_controller_symbols


def test_controller_symbols_and_linking(parse):
    parsed = parse(
        """
        const db = require('../db');

        async function listUsers(req, res) {}
        const getUser = async (req, res) => {};
        exports.createUser = (req, res) => {};

        class UserController {
          remove(req, res) {}
        }

        module.exports = { listUsers, getUser };
        """
    )

    symbols = extract_controller_symbols(parsed, "controllers/users.js")
    by_name = {s.name: s for s in symbols}

    assert set(by_name) == {"listUsers", "getUser", "createUser", "remove"}
    assert by_name["listUsers"].exported
    assert by_name["listUsers"].line == 4
    assert not by_name["remove"].exported

    endpoints = [
        Endpoint(method="GET", raw_path="/api/users", path="/api/users", file="routes/users.js", line=1,
                 controller="userController.remove"),
        Endpoint(method="GET", raw_path="/api/x", path="/api/x", file="routes/users.js", line=2,
                 controller="missing"),
    ]
    assert ControllerIndex(symbols).link(endpoints) == 1
    assert endpoints[0].controller_location == f"controllers/users.js:{by_name['remove'].line}"
    assert endpoints[1].controller_location is None
