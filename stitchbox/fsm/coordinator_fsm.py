import yaml
import logging
from pathlib import Path
from transitions import Machine


class CoordinatorFSM:
    """
    Finite State Machine for the stitch request coordinator.
    Loads its structure from states.yaml for easy modification.

    idle -> in_flight -> delivering -> idle, with submit accepted everywhere
    (latest request wins) and dispose returning to idle from any state.
    """

    def __init__(self, config_path=None, callbacks=None):
        """
        :param config_path: Optional path to the YAML FSM definition.
        :param callbacks: Optional dict of callbacks for state entry/exit actions.
                          Example: {"on_enter_in_flight": show_progress}
        """
        self.log = logging.getLogger("CoordinatorFSM")
        self.config_path = config_path or Path(__file__).parent / "states.yaml"
        self.callbacks = callbacks or {}

        with open(self.config_path, "r") as f:
            fsm_config = yaml.safe_load(f)

        states = fsm_config.get("states", [])
        transitions = fsm_config.get("transitions", [])
        initial = fsm_config.get("initial", "idle")

        machine = Machine(
            model=self,
            states=states,
            transitions=transitions,
            initial=initial,
            auto_transitions=False,
            after_state_change="_log_state",
        )
        self.machine = machine

        # Register and validate callbacks
        for name, func in self.callbacks.items():
            self.add_callback(name, func)

    def add_callback(self, name, func):
        """Attach ``on_enter_<state>`` / ``on_exit_<state>`` callbacks."""
        if not callable(func):
            raise ValueError(f"Callback '{name}' must be callable, got {type(func)}")
        if not (name.startswith("on_enter_") or name.startswith("on_exit_")):
            raise ValueError(f"Callback name '{name}' should look like 'on_enter_<state>' or 'on_exit_<state>'")

        kind, _, state = name[len("on_"):].partition("_")
        if state not in self.machine.states:
            raise ValueError(f"Callback '{name}' refers to unknown state '{state}'")

        self.machine.get_state(state).add_callback(kind, func)

    # is_idle(), is_in_flight(), is_delivering() are added by transitions

    def _log_state(self):
        self.log.debug(f"State -> {self.state}")
