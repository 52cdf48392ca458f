"""Templates written by `vncslots init`."""

CONFIG_TEMPLATE = """\
# vncslots configuration
#
# Settings under `defaults` apply to every host. Settings under `hosts.<name>`
# override them for the host whose name matches `hostname`.

defaults:
  # Command that starts the display server. $DISPLAY_NUMBER is replaced
  # with the allocated display. Write it without braces here: ${...} is
  # config variable interpolation. Leave unset for the vncserver default:
  #   vncserver :$DISPLAY_NUMBER -localhost -nolisten tcp
  # command: Xvnc :$DISPLAY_NUMBER -localhost

  # Display numbers handed out (inclusive range)
  min_display_number: 10
  max_display_number: 99

  # Extra attempts on other displays when the server fails to start
  retries: 10

  # Give each display server its own Xauthority file
  use_xauthority: true

  # Run commands without a display on Windows hosts
  skip_on_windows: true

  # Kill stale Xvnc servers and remove X lock files once per host
  clean_up: false

  # Where allocator state is kept between runs
  # state_file: ~/.vncslots/state.json

# hosts:
#   build-agent-1:
#     max_display_number: 40
#   windows-agent:
#     labels: [noxvnc]
"""
