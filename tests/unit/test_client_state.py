from community_push.client.state import ClientStateStore


def test_claim_auto_prompt_only_once(tmp_path):
    state = ClientStateStore(str(tmp_path / "state.json"))

    assert state.claim_auto_prompt() is True
    assert state.claim_auto_prompt() is False


def test_prompt_flag_survives_restart(tmp_path):
    path = str(tmp_path / "state.json")
    ClientStateStore(path).claim_auto_prompt()

    assert ClientStateStore(path).push_prompt_shown is True
    assert ClientStateStore(path).claim_auto_prompt() is False


def test_install_prompt_dismissal_is_session_only(tmp_path):
    path = str(tmp_path / "state.json")
    state = ClientStateStore(path)
    state.dismiss_install_prompt()
    state.mark_registered("https://push.example.com/a")

    assert state.install_prompt_dismissed is True
    restarted = ClientStateStore(path)
    assert restarted.install_prompt_dismissed is False
    assert restarted.registered_endpoint == "https://push.example.com/a"


def test_clear_registration(tmp_path):
    path = str(tmp_path / "state.json")
    state = ClientStateStore(path)
    state.mark_registered("https://push.example.com/a")
    state.clear_registration()

    assert ClientStateStore(path).registered_endpoint is None


def test_corrupt_state_file_starts_fresh(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    state = ClientStateStore(str(path))

    assert state.push_prompt_shown is False
    assert state.claim_auto_prompt() is True


def test_memory_only_store():
    state = ClientStateStore()
    assert state.claim_auto_prompt() is True
    assert state.claim_auto_prompt() is False


def test_unwritable_state_never_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    state = ClientStateStore(str(blocker / "state.json"))

    assert state.claim_auto_prompt() is False
    state.mark_registered("https://push.example.com/a")
    assert state.registered_endpoint == "https://push.example.com/a"
    state.clear_registration()
    assert state.registered_endpoint is None
