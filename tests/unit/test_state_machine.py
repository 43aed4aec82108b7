"""Unit tests for InstallStateMachine."""

import re
import pytest

from launcher.models.config import ProgressRange
from launcher.models.status import InstallStep
from launcher.services.state_machine import InstallStateMachine, MAX_LOG_ENTRIES


@pytest.mark.unit
class TestInstallStateMachine:
    """Test InstallStateMachine in isolation."""

    @pytest.fixture
    def machine(self, recording_sink):
        return InstallStateMachine(sinks=[recording_sink])

    def test_initial_state(self, machine):
        status = machine.get_status()

        assert status.current_step == InstallStep.NONE
        assert status.progress == 0.0
        assert status.logs == []
        assert status.is_complete is False
        assert status.has_error is False
        assert status.error_message == ""

    def test_set_step_progress_is_ordinal_fraction(self, machine):
        machine.set_step(InstallStep.DOWNLOAD_PACKAGE, "cloning")

        status = machine.get_status()
        assert status.current_step == InstallStep.DOWNLOAD_PACKAGE
        assert status.detail == "cloning"
        assert status.progress == pytest.approx(2 / 7)
        assert status.logs[-1].message == "Downloading framework packages... cloning"

    def test_set_step_progress_never_decreases(self, machine):
        sequence = [
            InstallStep.CHECK_ENVIRONMENT,
            InstallStep.INSTALL_SECONDARY_B,
            InstallStep.INSTALL_SECONDARY_A,
            InstallStep.DOWNLOAD_PACKAGE,
            InstallStep.RUN_SECONDARY_INSTALL,
            InstallStep.RUN_SECONDARY_INSTALL,
            InstallStep.LAUNCH_SECONDARY_INSTALLER,
        ]
        seen = []
        for step in sequence:
            machine.set_step(step)
            seen.append(machine.progress)

        assert seen == sorted(seen)
        assert machine.current_step == InstallStep.RUN_SECONDARY_INSTALL

    def test_step_regression_is_ignored(self, machine):
        machine.set_step(InstallStep.INSTALL_SECONDARY_B)
        machine.set_step(InstallStep.CHECK_ENVIRONMENT, "late")

        status = machine.get_status()
        assert status.current_step == InstallStep.INSTALL_SECONDARY_B
        assert status.detail == "late"

    def test_step_regression_logs_current_step(self, machine):
        machine.set_step(InstallStep.INSTALL_SECONDARY_A)
        machine.set_step(InstallStep.DOWNLOAD_PACKAGE, "late")

        last = machine.get_status().logs[-1].message
        assert last == f"{InstallStep.INSTALL_SECONDARY_A.description} late"
        assert InstallStep.DOWNLOAD_PACKAGE.description not in last

    @pytest.mark.parametrize("prior", [None, InstallStep.CHECK_ENVIRONMENT, InstallStep.RUN_SECONDARY_INSTALL])
    def test_complete_forces_full_progress(self, machine, prior):
        if prior is not None:
            machine.set_step(prior)
        machine.set_error("something broke")

        machine.set_step(InstallStep.COMPLETE)

        status = machine.get_status()
        assert status.progress == 1.0
        assert status.is_complete is True
        assert status.has_error is True

    def test_package_progress_uses_step_slice(self, recording_sink):
        machine = InstallStateMachine(
            sinks=[recording_sink],
            progress_ranges={InstallStep.INSTALL_SECONDARY_A: ProgressRange(base=0.5, span=0.4)},
        )
        machine.set_step(InstallStep.INSTALL_SECONDARY_A)
        assert machine.progress == pytest.approx(3 / 7)

        machine.set_package_progress(1, 2, "first")
        assert machine.progress == pytest.approx(0.7)

        machine.set_package_progress(2, 2, "second")
        status = machine.get_status()
        assert status.progress == pytest.approx(0.9)
        assert status.current_package_index == 2
        assert status.total_package_count == 2
        assert status.detail == "(2/2) second"
        assert status.logs[-1].message == "  Configuring: second"

    def test_package_progress_below_current_keeps_progress(self, machine):
        machine.set_step(InstallStep.RUN_SECONDARY_INSTALL)
        before = machine.progress

        # default slice for this step is [0.4, 0.9), below 6/7 at the start
        machine.set_package_progress(1, 10, "pkg")

        assert machine.progress == before

    def test_package_progress_without_slice_keeps_progress(self, machine):
        machine.set_step(InstallStep.DOWNLOAD_PACKAGE)
        before = machine.progress

        machine.set_package_progress(3, 4, "pkg")

        assert machine.progress == before
        assert machine.get_status().detail == "(3/4) pkg"

    def test_package_progress_zero_total(self):
        machine = InstallStateMachine(
            progress_ranges={InstallStep.INSTALL_SECONDARY_A: ProgressRange(base=0.5, span=0.4)},
        )
        machine.set_step(InstallStep.INSTALL_SECONDARY_A)

        machine.set_package_progress(0, 0, "nothing")

        assert machine.progress == pytest.approx(0.5)

    def test_log_capacity_evicts_oldest(self, machine):
        for i in range(1, MAX_LOG_ENTRIES + 2):
            machine.add_log(f"entry {i}")

        logs = machine.get_status().logs
        assert len(logs) == MAX_LOG_ENTRIES
        assert logs[0].message == "entry 2"
        assert logs[-1].message == f"entry {MAX_LOG_ENTRIES + 1}"

    def test_log_entry_format(self, machine):
        machine.add_log("hello")

        formatted = machine.get_status().logs[0].format()
        assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] hello", formatted)

    def test_set_error_keeps_completion(self, machine):
        machine.set_step(InstallStep.COMPLETE)

        machine.set_error("CLONE_FAILED: boom")

        status = machine.get_status()
        assert status.is_complete is True
        assert status.has_error is True
        assert status.error_message == "CLONE_FAILED: boom"
        assert status.logs[-1].message == "Error: CLONE_FAILED: boom"

    def test_reset_clears_everything(self, machine):
        machine.set_step(InstallStep.COMPLETE)
        machine.set_error("x")
        machine.set_package_progress(1, 2, "p")

        machine.reset()

        status = machine.get_status()
        assert status.current_step == InstallStep.NONE
        assert status.progress == 0.0
        assert status.logs == []
        assert status.is_complete is False
        assert status.has_error is False
        assert status.current_package_index == 0
        assert status.total_package_count == 0

    def test_every_mutation_notifies_sinks(self, machine, recording_sink):
        recording_sink.states.clear()

        machine.set_step(InstallStep.CHECK_ENVIRONMENT)
        machine.set_package_progress(1, 1, "p")
        machine.add_log("log")
        machine.set_error("err")
        machine.reset()

        assert len(recording_sink.states) == 5
        assert recording_sink.states[3].has_error is True
        assert recording_sink.states[4].current_step == InstallStep.NONE

    def test_snapshots_are_independent(self, machine, recording_sink):
        machine.add_log("one")
        snapshot = recording_sink.states[-1]

        machine.add_log("two")

        assert [e.message for e in snapshot.logs] == ["one"]

    def test_failing_sink_does_not_block_others(self, recording_sink):
        class BrokenSink:
            def notify(self, state):
                raise RuntimeError("sink down")

        machine = InstallStateMachine(sinks=[BrokenSink(), recording_sink])
        recording_sink.states.clear()

        machine.add_log("still delivered")

        assert recording_sink.states[-1].logs[-1].message == "still delivered"
