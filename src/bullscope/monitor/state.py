"""View state, navigation actions and the reducer that applies them.

Everything here is synchronous and free of I/O. The driver dispatches
actions and reacts to the resulting state (for example by fetching jobs
after a queue is selected); renderers only ever read `ViewState`.

Invariants kept by every transition:

* `selected_job` set => screen is `job-detail`
* `selected_queue` set => screen is `jobs` or `job-detail`
* clearing `selected_queue` => screen `queues`, no jobs, no selected job
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Mapping, Union

from bullscope.store.connection import ConnectionStatus
from bullscope.store.models import STATUS_FILTERS, JobInfo, JobLogs, JobState, QueueInfo


class Screen(str, Enum):
    QUEUES = "queues"
    JOBS = "jobs"
    JOB_DETAIL = "job-detail"


class DetailTab(str, Enum):
    INFO = "info"
    DATA = "data"
    ERROR = "error"
    RESULT = "result"
    LOGS = "logs"


DETAIL_TABS: tuple[DetailTab, ...] = tuple(DetailTab)


@dataclass(frozen=True, slots=True)
class ViewState:
    """Immutable snapshot of everything the screen shows."""

    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    connection_error: str | None = None
    queue_names: tuple[str, ...] = ()
    queues: Mapping[str, QueueInfo] = field(default_factory=dict)
    jobs: tuple[JobInfo, ...] = ()
    jobs_loading: bool = False
    selected_queue: str | None = None
    selected_job: JobInfo | None = None
    job_logs: JobLogs | None = None
    screen: Screen = Screen.QUEUES
    job_status_filter: JobState = JobState.ACTIVE
    queue_filter: str = ""
    is_filtering_queues: bool = False
    detail_tab: DetailTab = DetailTab.INFO

    @property
    def filtered_queue_names(self) -> tuple[str, ...]:
        needle = self.queue_filter.strip().lower()
        if not needle:
            return self.queue_names
        return tuple(name for name in self.queue_names if needle in name.lower())

    @property
    def selected_queue_info(self) -> QueueInfo | None:
        if self.selected_queue is None:
            return None
        return self.queues.get(self.selected_queue)


@dataclass(frozen=True, slots=True)
class SetConnectionStatus:
    status: ConnectionStatus
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SetQueueNames:
    names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class UpdateQueues:
    infos: tuple[QueueInfo, ...]


@dataclass(frozen=True, slots=True)
class SelectQueue:
    name: str | None


@dataclass(frozen=True, slots=True)
class JobsLoaded:
    """A job page fetched for `(queue, status)`; dropped if no longer current."""

    queue: str
    status: JobState
    jobs: tuple[JobInfo, ...]


@dataclass(frozen=True, slots=True)
class SelectJob:
    job: JobInfo | None


@dataclass(frozen=True, slots=True)
class JobDetailLoaded:
    """Fresh copy of the open job; `job=None` means it vanished from the store."""

    queue: str
    job_id: str
    job: JobInfo | None
    logs: JobLogs | None = None


@dataclass(frozen=True, slots=True)
class SetJobStatusFilter:
    status: JobState


@dataclass(frozen=True, slots=True)
class CycleJobStatusFilter:
    step: int = 1


@dataclass(frozen=True, slots=True)
class SetQueueFilter:
    text: str


@dataclass(frozen=True, slots=True)
class StartQueueFilter:
    pass


@dataclass(frozen=True, slots=True)
class ConfirmQueueFilter:
    pass


@dataclass(frozen=True, slots=True)
class CancelQueueFilter:
    pass


@dataclass(frozen=True, slots=True)
class GoBack:
    pass


@dataclass(frozen=True, slots=True)
class CycleDetailTab:
    step: int = 1


Action = Union[
    SetConnectionStatus,
    SetQueueNames,
    UpdateQueues,
    SelectQueue,
    JobsLoaded,
    SelectJob,
    JobDetailLoaded,
    SetJobStatusFilter,
    CycleJobStatusFilter,
    SetQueueFilter,
    StartQueueFilter,
    ConfirmQueueFilter,
    CancelQueueFilter,
    GoBack,
    CycleDetailTab,
]


def _select_queue(state: ViewState, name: str | None) -> ViewState:
    return replace(
        state,
        selected_queue=name,
        screen=Screen.JOBS if name else Screen.QUEUES,
        jobs=(),
        jobs_loading=bool(name),
        selected_job=None,
        job_logs=None,
        detail_tab=DetailTab.INFO,
    )


def _select_job(state: ViewState, job: JobInfo | None) -> ViewState:
    if job is not None and state.selected_queue is None:
        return state
    if job is None:
        screen = Screen.JOBS if state.selected_queue else Screen.QUEUES
    else:
        screen = Screen.JOB_DETAIL
    return replace(
        state,
        selected_job=job,
        job_logs=None,
        screen=screen,
        detail_tab=DetailTab.INFO,
    )


def _set_status_filter(state: ViewState, status: JobState) -> ViewState:
    if status == state.job_status_filter:
        return state
    return replace(
        state,
        job_status_filter=status,
        jobs=(),
        jobs_loading=state.selected_queue is not None,
    )


def _cycle(options: tuple, current: object, step: int) -> object:
    try:
        idx = options.index(current)
    except ValueError:
        idx = 0
    return options[(idx + step) % len(options)]


def reduce(state: ViewState, action: Action) -> ViewState:
    """Apply one action; returns `state` itself when nothing changes."""

    if isinstance(action, SetConnectionStatus):
        error = action.error if action.status is ConnectionStatus.ERROR else None
        return replace(state, connection_status=action.status, connection_error=error)

    if isinstance(action, SetQueueNames):
        return replace(state, queue_names=tuple(action.names))

    if isinstance(action, UpdateQueues):
        if not action.infos:
            return state
        queues = dict(state.queues)
        for info in action.infos:
            queues[info.name] = info
        return replace(state, queues=queues)

    if isinstance(action, SelectQueue):
        return _select_queue(state, action.name)

    if isinstance(action, JobsLoaded):
        if action.queue != state.selected_queue or action.status != state.job_status_filter:
            return state
        return replace(state, jobs=tuple(action.jobs), jobs_loading=False)

    if isinstance(action, SelectJob):
        return _select_job(state, action.job)

    if isinstance(action, JobDetailLoaded):
        current = state.selected_job
        if (
            current is None
            or action.queue != state.selected_queue
            or action.job_id != current.id
        ):
            return state
        return replace(
            state,
            selected_job=action.job or current,
            job_logs=action.logs if action.logs is not None else state.job_logs,
        )

    if isinstance(action, SetJobStatusFilter):
        return _set_status_filter(state, action.status)

    if isinstance(action, CycleJobStatusFilter):
        status = _cycle(STATUS_FILTERS, state.job_status_filter, action.step)
        return _set_status_filter(state, status)  # type: ignore[arg-type]

    if isinstance(action, SetQueueFilter):
        if action.text == state.queue_filter:
            return state
        return replace(state, queue_filter=action.text)

    if isinstance(action, StartQueueFilter):
        if state.screen is not Screen.QUEUES:
            return state
        return replace(state, is_filtering_queues=True)

    if isinstance(action, ConfirmQueueFilter):
        return replace(state, is_filtering_queues=False)

    if isinstance(action, CancelQueueFilter):
        return replace(state, is_filtering_queues=False, queue_filter="")

    if isinstance(action, GoBack):
        if state.screen is Screen.JOB_DETAIL:
            return _select_job(state, None)
        if state.screen is Screen.JOBS:
            return _select_queue(state, None)
        return state

    if isinstance(action, CycleDetailTab):
        tab = _cycle(DETAIL_TABS, state.detail_tab, action.step)
        return replace(state, detail_tab=tab)

    raise TypeError(f"Unsupported action type: {type(action).__name__}")


Listener = Callable[[ViewState], None]


class ViewStateStore:
    """Holds the current ViewState and notifies subscribers on change."""

    def __init__(self, initial: ViewState | None = None) -> None:
        self._state = initial or ViewState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ViewState:
        return self._state

    def dispatch(self, action: Action) -> ViewState:
        new_state = reduce(self._state, action)
        if new_state is not self._state:
            self._state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
