from pulse.db.repository import Repository
from scripts.run_cycle import main


def test_insights_cycle_from_command_line(db_session, create_client, capsys) -> None:
    idle = create_client(joined_days_ago=6)

    exit_code = main(["insights"])

    assert exit_code == 0
    assert "created_triggers: 1" in capsys.readouterr().out
    triggers = Repository(db_session).list_triggers(idle.id, include_resolved=False)
    assert [trigger.type for trigger in triggers] == ["inactivity"]
