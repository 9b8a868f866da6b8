from itertools import count as naturals
from time import sleep, perf_counter
from enumerable import Enumerable, NOTHING

def expensive_transform(x):
    # Simulate a costly step so laziness is visible
    print(f"  computing f({x}) ...")
    sleep(0.2)  # pretend this is expensive
    return x * x

print("\n--- Demo: laziness (no work until a terminal runs) ---")
pipeline = (
    Enumerable.range(1, 10_000)
    .map(expensive_transform)   # expensive; watch when it runs
    .filter(lambda v: v % 2 == 0)
    .skip(3)
    .take(5)
)

print("Constructed pipeline. No output yet (nothing computed).")
print("\nRunning to_list (should compute only what's needed for 5 items):")
t0 = perf_counter()
out = pipeline.to_list()
t1 = perf_counter()
print(f"Result: {out}")
print(f"Time: {t1 - t0:.2f}s\n")

print("--- Demo: short-circuit over an infinite source ---")
pulled = []
infinite = Enumerable.from_iterable(naturals()).map(lambda x: pulled.append(x) or x)
print(f"take(3) -> {infinite.take(3).to_list()}, pulled {len(pulled)} elements")
print(
    "take_while(x < 5) ->",
    Enumerable.from_iterable([1, 2, 3, 10, 4, 5]).take_while(lambda x: x < 5).to_list(),
)
print()

print("--- Demo: skip_while re-tests every element ---")
print(
    "[1, 2, 3, 1, 2, 3].skip_while(x < 3) ->",
    Enumerable.from_iterable([1, 2, 3, 1, 2, 3]).skip_while(lambda x: x < 3).to_list(),
)
print()

print("--- Demo: terminals ---")
print("count:", Enumerable.range(10).filter(lambda x: x % 3 == 0).count())
print("reduce:", Enumerable.range(1, 5).reduce(lambda acc, x: acc * x, 1))
print("find:", Enumerable.range(100).find(lambda x: x * x > 50))
print("first of empty:", Enumerable.from_iterable([]).first(NOTHING))
print("some:", Enumerable.range(5).some(lambda x: x > 3))
print("every:", Enumerable.range(5).every(lambda x: x > 3))

print("\n--- Demo: single pass ---")
drained = Enumerable.range(3)
print("first to_list:", drained.to_list())
print("second to_list:", drained.to_list())
