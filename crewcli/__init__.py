"""crewcli — interactive provisioning wizard for the Control Tower agent."""

__version__ = "0.1.0"
