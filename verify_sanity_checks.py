"""
Verify sanity checks are working:
1. Gated access never exceeds capacity and leaks no permits
2. Ungated access over capacity produces conflicts
3. A timed-out acquire leaves the permit count unchanged
4. Requests are conserved: total == successful + timeouts
"""
import sys
import threading

from analysis.metrics import MetricsCollector
from models.admission_gate import AdmissionGate
from models.config import SimulationConfig
from models.resource import SharedResource
from utils.random_source import make_rng


FAST = SimulationConfig(
    network_latency_mean_ms=1, network_latency_std_dev_ms=0,
    processing_time_mean_ms=5, processing_time_std_dev_ms=2,
    seed=7
)
WORKERS = 16
ACCESSES_PER_WORKER = 10


def hammer(resource: SharedResource, gated: bool, metrics: MetricsCollector) -> None:
    """Run WORKERS threads against one resource."""
    def worker(worker_id: int):
        rng = make_rng(worker_id, FAST.seed)
        for _ in range(ACCESSES_PER_WORKER):
            if gated:
                resource.access_gated(worker_id, rng, FAST, metrics)
            else:
                resource.access_ungated(worker_id, rng, FAST, metrics)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


print("="*60)
print("SANITY CHECK VERIFICATION")
print("="*60)

print("\n1. Gated access respects capacity...")
resource = SharedResource("resource_0", 2, acquire_timeout_ms=-1)
metrics = MetricsCollector()
hammer(resource, True, metrics)
if resource.peak_users > 2 or metrics.conflicts != 0:
    print(f"   ✗ FAILED: peak={resource.peak_users}, conflicts={metrics.conflicts}")
    sys.exit(1)
if resource.gate.get_value() != resource.gate.get_max_value():
    print(f"   ✗ FAILED: leaked permits, value={resource.gate.get_value()}")
    sys.exit(1)
print(f"   ✓ peak users {resource.peak_users} <= 2, no conflicts, all permits returned")

print("\n2. Ungated access produces conflicts...")
resource = SharedResource("resource_1", 1)
metrics = MetricsCollector()
hammer(resource, False, metrics)
if metrics.conflicts == 0:
    print("   ✗ FAILED: expected conflicts without synchronization")
    sys.exit(1)
print(f"   ✓ {metrics.conflicts} conflicts over {metrics.successful_requests} accesses")

print("\n3. Timed-out acquire leaves the count unchanged...")
gate = AdmissionGate(1, "sem_check")
gate.acquire()
if gate.acquire(timeout_ms=50) or gate.get_value() != 0:
    print("   ✗ FAILED: acquire on an exhausted gate should time out without side effects")
    sys.exit(1)
gate.release()
if gate.get_value() != 1:
    print(f"   ✗ FAILED: value after release is {gate.get_value()}")
    sys.exit(1)
print("   ✓ Timeout returned False, count stayed 0, release restored 1")

print("\n4. Request conservation...")
if metrics.total_requests != metrics.successful_requests + metrics.timeouts:
    print("   ✗ FAILED: total != successful + timeouts")
    sys.exit(1)
print(f"   ✓ {metrics.total_requests} == {metrics.successful_requests} + {metrics.timeouts}")

print("\n" + "="*60)
print("ALL SANITY CHECKS PASSED ✓")
print("="*60)
