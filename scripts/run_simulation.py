# scripts/run_simulation.py
import logging

from ratesim.runner.run import run_from_config

logging.basicConfig(level=logging.INFO)

result = run_from_config("examples/constant_cev.yaml")
print(result.summary.to_frame().tail())
