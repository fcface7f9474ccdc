"""
Vorio Agent - on-premise bridge between a WiFi controller and Vorio Cloud.

Equivalent to the `vorio-agent` console script.
"""

from vorio_agent.cli import run

if __name__ == "__main__":
    run()
