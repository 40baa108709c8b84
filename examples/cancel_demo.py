# examples/cancel_demo.py
"""Start a long simulation on a worker thread and cancel it part-way."""
import threading
import time

from ratesim.runner.core import simulate

cancel = threading.Event()
params = {"steps": 2000, "nPaths": 5000, "gamma": 0.5}

result_box = {}
worker = threading.Thread(
    target=lambda: result_box.update(
        result=simulate(params, seed=1, n_workers=4, cancel=cancel)
    )
)
worker.start()
time.sleep(0.5)
cancel.set()
worker.join()

result = result_box["result"]
print("cancelled:", result.cancelled)
print("completed paths:", result.ensemble.n_paths)
