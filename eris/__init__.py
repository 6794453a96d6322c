"""
Eris Relay: remote control for a single playback agent.

Controllers send playback commands to the hub, the hub relays them to the
agent, and the agent reports playback status back through the hub to every
controller.

  hub.py         relay hub (aiohttp WebSocket + HTTP command ingress)
  agent.py       agent runtime (poll cadence, reconnect-before-report)
  controller.py  controller runtime (commands out, latest status in)
  cli.py         `eris` command line entry point
  adapters/      player adapters (demo, mpv)
  lib/           status model, wire protocol, config, hub link
"""

__version__ = "0.3.0"
