"""Sign-up form view model driven by injected schedulers.

The view model is ordinary reactivex code: it maps the e-mail text field to a
validity flag and, when the submit button is tapped, calls the registration
API on a background scheduler before handing the result back on the main
scheduler. It never touches a concrete timer or thread, so the same class
runs under a `VirtualScheduler` in tests and under the asyncio runtime in
an application.

Scenario (virtual time):

- tick 0..3: the user types "bob", "bob@example.com", "bob@", "alice@example.org"
- tick 4: the user taps submit

`run_scenario()` returns what the two output streams captured.
"""

import asyncio
import re
from typing import Any, Callable, Dict

import reactivex
from reactivex import abc
from reactivex import operators as ops

from rxlabs.observer import Outcome, StreamObserver
from rxlabs.reactive import RxSchedulerAdapter, observe_stream, to_observable
from rxlabs.runtime.loop_scheduler import AsyncioScheduler
from rxlabs.scheduler import VirtualScheduler
from rxlabs.subject import ManualSubject

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def looks_like_email(text: str) -> bool:
    return bool(EMAIL_PATTERN.match(text))


class SignupFormViewModel:
    """
    Outputs:
    - `email_valid`: one bool per e-mail text change, delivered on the main
      scheduler. Never completes on its own.
    - `signup_result`: the API response for the first submit tap, delivered
      on the main scheduler, then completion.
    """

    def __init__(
        self,
        email_text: reactivex.Observable,
        submit_taps: reactivex.Observable,
        register: Callable[[str], Any],
        main_scheduler: abc.SchedulerBase,
        background_scheduler: abc.SchedulerBase,
    ) -> None:
        self.email_valid = email_text.pipe(
            ops.map(looks_like_email),
            ops.observe_on(main_scheduler),
        )
        self.signup_result = submit_taps.pipe(
            ops.with_latest_from(email_text),
            ops.map(lambda tap_and_email: tap_and_email[1]),
            ops.take(1),
            ops.observe_on(background_scheduler),
            ops.map(register),
            ops.observe_on(main_scheduler),
        )


def fake_register(email: str) -> Dict[str, Any]:
    return {"email": email, "status": "registered"}


def _summary(observer: StreamObserver) -> Dict[str, Any]:
    outcome = observer.outcome()
    return {
        "values": observer.values(),
        "outcome": outcome.value if isinstance(outcome, Outcome) else None,
    }


def run_scenario() -> Dict[str, Any]:
    scheduler = VirtualScheduler()
    rx_scheduler = RxSchedulerAdapter(scheduler)
    email = ManualSubject("email")
    taps = ManualSubject("submit")

    vm = SignupFormViewModel(
        to_observable(email),
        to_observable(taps),
        fake_register,
        main_scheduler=rx_scheduler,
        background_scheduler=rx_scheduler,
    )
    validity = observe_stream(vm.email_valid, clock=scheduler)
    result = observe_stream(vm.signup_result, clock=scheduler)

    for tick, text in enumerate(["bob", "bob@example.com", "bob@", "alice@example.org"]):
        email.send_at(scheduler, tick, text)
    taps.send_at(scheduler, 4, None)
    scheduler.advance(10)

    with validity, result:
        return {
            "now": scheduler.now(),
            "email_valid": _summary(validity),
            "signup_result": _summary(result),
        }


async def run_realtime(tick_seconds: float = 0.001) -> Dict[str, Any]:
    """Same scenario on the asyncio runtime; timing follows the event loop.

    Inputs are spaced one tick apart starting from whenever wiring finishes,
    however long that took.
    """
    scheduler = AsyncioScheduler(tick_seconds=tick_seconds)
    rx_scheduler = RxSchedulerAdapter(scheduler, tick_seconds=tick_seconds)
    email = ManualSubject("email")
    taps = ManualSubject("submit")

    vm = SignupFormViewModel(
        to_observable(email),
        to_observable(taps),
        fake_register,
        main_scheduler=rx_scheduler,
        background_scheduler=rx_scheduler,
    )
    validity = observe_stream(vm.email_valid)
    result = observe_stream(vm.signup_result)

    # The loop clock kept running during setup, so offsets count from here.
    for delay, text in enumerate(["bob", "bob@example.com", "bob@", "alice@example.org"]):
        email.send_after(scheduler, delay, text)
    taps.send_after(scheduler, 4, None)
    while not result.is_complete():
        await asyncio.sleep(tick_seconds)

    with validity, result:
        return {
            "email_valid": _summary(validity),
            "signup_result": _summary(result),
        }


def main():
    print({"virtual": run_scenario()})
    print({"realtime": asyncio.run(run_realtime())})


if __name__ == "__main__":
    main()
