#!/usr/bin/env python3
"""DayGrid — interactive terminal tracker (Textual)."""

from __future__ import annotations

import sys

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Static,
    TextArea,
)

from core import (
    AuthError,
    AuthService,
    DocumentStore,
    LocalCache,
    NotCurrentPeriodError,
    RemoteStore,
    StoreError,
    Tracker,
    User,
    cache_root,
    configure_logging,
    get_user_timezone,
    load_config,
    store_path,
    workspace_root,
)


CSS = """
#main-layout {
    height: 1fr;
}
#left-pane {
    width: 3fr;
    padding: 0 1;
}
#right-pane {
    width: 2fr;
    padding: 0 1;
}
.section-title {
    text-style: bold;
    color: $accent;
    margin: 1 0 0 0;
}
#hours-table {
    height: 1fr;
}
#week-table, #month-table {
    height: auto;
    max-height: 10;
}
#note-area {
    height: 8;
}
#edit-input {
    display: none;
    dock: bottom;
}
LoginScreen {
    align: center middle;
}
#login-box {
    width: 60;
    height: auto;
    border: round $accent;
    padding: 1 2;
}
#login-buttons {
    height: auto;
    margin: 1 0 0 0;
}
.note-date {
    color: $text-muted;
    margin: 1 0 0 0;
}
"""


# ── Login ──────────────────────────────────────────────────────


class LoginScreen(ModalScreen[User | None]):
    """Email + password, plus the access key until it has been used once."""

    def __init__(self, auth: AuthService) -> None:
        super().__init__()
        self.auth = auth

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label("DayGrid", classes="section-title"),
            Input(placeholder="email", id="email"),
            Input(placeholder="password", password=True, id="password"),
            Input(placeholder="access key (first sign-in only)", id="access-key"),
            Horizontal(
                Button("Sign in", id="sign-in", variant="primary"),
                Button("Sign up", id="sign-up"),
                Button("Guest", id="guest"),
                id="login-buttons",
            ),
            Static(id="login-message"),
            id="login-box",
        )

    def _value(self, widget_id: str) -> str:
        return self.query_one(f"#{widget_id}", Input).value.strip()

    def _message(self, text: str) -> None:
        self.query_one("#login-message", Static).update(text)

    @on(Input.Changed, "#email")
    def _on_email_change(self, event: Input.Changed) -> None:
        email = event.value.strip()
        needs_key = True
        if "@" in email:
            try:
                needs_key = self.auth.requires_access_key(email)
            except StoreError:
                needs_key = True
        self.query_one("#access-key", Input).display = needs_key

    @on(Button.Pressed, "#sign-in")
    def _on_sign_in(self) -> None:
        try:
            user = self.auth.sign_in(
                self._value("email"),
                self.query_one("#password", Input).value,
                self._value("access-key") or None,
            )
        except (AuthError, StoreError) as e:
            self._message(str(e))
            return
        self.dismiss(user)

    @on(Button.Pressed, "#sign-up")
    def _on_sign_up(self) -> None:
        try:
            grant = self.auth.sign_up(self._value("email"), self.query_one("#password", Input).value)
        except (AuthError, StoreError) as e:
            self._message(str(e))
            return
        self.query_one("#access-key", Input).display = True
        self._message(
            f"Account created. Your access key is {grant.key}\n"
            "Keep it: it is required for your first sign-in."
        )

    @on(Button.Pressed, "#guest")
    def _on_guest(self) -> None:
        self.dismiss(None)


# ── Overlay screens ────────────────────────────────────────────


class PendingView(Vertical):
    """All pending items, backlog and current period."""

    def __init__(self, tracker: Tracker, **kwargs) -> None:
        super().__init__(**kwargs)
        self.tracker = tracker
        self._rows: list[tuple[str, str, int]] = []

    def compose(self) -> ComposeResult:
        yield Label("Pending", classes="section-title", id="pending-title")
        yield DataTable(id="pending-table", cursor_type="row")

    def on_mount(self) -> None:
        table = self.query_one("#pending-table", DataTable)
        table.add_columns("Kind", "Period", "When", "Task")
        self.reload()

    def reload(self) -> None:
        summary = self.tracker.pending()
        table = self.query_one("#pending-table", DataTable)
        table.clear()
        self._rows = []
        for p in summary.daily_current:
            self._rows.append(("daily", p.day_key, p.hour))
            table.add_row("Today", p.day_key, f"{p.hour:02d}:00", p.text)
        for p in summary.weekly_current:
            self._rows.append(("weekly", p.week_key, p.index))
            table.add_row("This week", p.week_key, f"#{p.index + 1}", p.text)
        for p in summary.monthly_current:
            self._rows.append(("monthly", p.month_key, p.index))
            table.add_row("This month", p.month_key, f"#{p.index + 1}", p.text)
        for p in summary.daily_backlog:
            self._rows.append(("daily", p.day_key, p.hour))
            table.add_row("Daily", p.day_key, f"{p.hour:02d}:00", p.text)
        for p in summary.weekly_backlog:
            self._rows.append(("weekly", p.week_key, p.index))
            table.add_row("Weekly", p.week_key, f"#{p.index + 1}", p.text)
        for p in summary.monthly_backlog:
            self._rows.append(("monthly", p.month_key, p.index))
            table.add_row("Monthly", p.month_key, f"#{p.index + 1}", p.text)
        self.query_one("#pending-title", Label).update(f"Pending ({summary.total_count})")

    def selected(self) -> tuple[str, str, int] | None:
        table = self.query_one("#pending-table", DataTable)
        if not self._rows or table.cursor_row >= len(self._rows):
            return None
        return self._rows[table.cursor_row]


class NotesView(VerticalScroll):
    def __init__(self, tracker: Tracker, **kwargs) -> None:
        super().__init__(**kwargs)
        self.tracker = tracker

    def compose(self) -> ComposeResult:
        yield Label("All notes", classes="section-title")
        notes = self.tracker.notes()
        if not notes:
            yield Static("No notes found.")
        for day, note in notes:
            yield Static(day, classes="note-date")
            yield Static(note)


# ── Main app ───────────────────────────────────────────────────


class DayGridApp(App):
    """DayGrid — hourly tasks, weekly and monthly goals."""

    TITLE = "DayGrid"
    CSS = CSS
    AUTO_FOCUS = "#hours-table"

    BINDINGS = [
        Binding("comma", "shift_day(-1)", "Prev day"),
        Binding("full_stop", "shift_day(1)", "Next day"),
        Binding("t", "today", "Today"),
        Binding("left_square_bracket", "shift_week(-1)", "Prev week", show=False),
        Binding("right_square_bracket", "shift_week(1)", "Next week", show=False),
        Binding("left_curly_bracket", "shift_month(-1)", "Prev month", show=False),
        Binding("right_curly_bracket", "shift_month(1)", "Next month", show=False),
        Binding("space", "toggle_done", "Done"),
        Binding("e", "edit", "Edit"),
        Binding("a", "add_goal", "Add goal"),
        Binding("x", "remove_goal", "Remove goal"),
        Binding("m", "mark_pending_done", "Mark done", show=False),
        Binding("p", "show_pending", "Pending"),
        Binding("n", "show_notes", "Notes"),
        Binding("d", "show_dashboard", "Dashboard"),
        Binding("ctrl+s", "save", "Save"),
        Binding("c", "clear_current", "Clear"),
        Binding("W", "clear_week", "Clear week", show=False),
        Binding("M", "clear_month", "Clear month", show=False),
        Binding("l", "logout", "Logout"),
        Binding("escape", "cancel_edit", "Back", show=False),
        Binding("q", "quit_app", "Quit"),
    ]

    current_view: reactive[str] = reactive("dashboard")

    def __init__(self) -> None:
        super().__init__()
        root = workspace_root()
        self.auth = AuthService(
            RemoteStore(DocumentStore(store_path(root))),
            min_password_length=load_config(root).min_password_length,
        )
        self.tracker = Tracker(
            self.auth.store,
            self.auth,
            LocalCache(cache_root(root)),
            tz=get_user_timezone(root),
        )
        self._editing: tuple[str, int] | None = None
        self._loading_note = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label(id="day-title", classes="section-title"),
                DataTable(id="hours-table", cursor_type="row"),
                id="left-pane",
            ),
            VerticalScroll(
                Label(id="week-title", classes="section-title"),
                DataTable(id="week-table", cursor_type="row"),
                Label(id="month-title", classes="section-title"),
                DataTable(id="month-table", cursor_type="row"),
                Label("Note", classes="section-title"),
                TextArea(id="note-area"),
                id="right-pane",
            ),
            id="main-layout",
        )
        yield Input(id="edit-input")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#hours-table", DataTable).add_columns("Hour", "Done", "Task")
        self.query_one("#week-table", DataTable).add_columns("#", "Done", "Goal")
        self.query_one("#month-table", DataTable).add_columns("#", "Done", "Goal")
        self.set_interval(60, self._refresh_pending_count)
        self.push_screen(LoginScreen(self.auth), self._after_login)

    def _after_login(self, user: User | None) -> None:
        if user is None:
            self.notify("Working offline as guest. Data stays on this device.")
        self._load_data()

    # ── Rendering ──────────────────────────────────────────────

    def _load_data(self) -> None:
        t = self.tracker
        day = t.day()
        self.query_one("#day-title", Label).update(f"Day {t.day_key}")
        hours = self.query_one("#hours-table", DataTable)
        cursor = hours.cursor_row
        hours.clear()
        for h in range(24):
            entry = day.tasks.get(h)
            hours.add_row(f"{h:02d}:00", "✓" if entry and entry.done else "", entry.text if entry else "")
        hours.move_cursor(row=min(cursor, 23))

        self.query_one("#week-title", Label).update(f"Week of {t.week_key} (Mon–Sun)")
        self._fill_goals("#week-table", t.week().goals)
        self.query_one("#month-title", Label).update(f"Month {t.month_key}")
        self._fill_goals("#month-table", t.month().goals)

        self._loading_note = True
        self.query_one("#note-area", TextArea).load_text(day.note)
        self._loading_note = False
        self._refresh_pending_count()

    def _fill_goals(self, selector: str, goals) -> None:
        table = self.query_one(selector, DataTable)
        table.clear()
        for i, g in enumerate(goals):
            table.add_row(str(i + 1), "✓" if g.done else "", g.text)

    def _refresh_pending_count(self) -> None:
        user = self.tracker.user
        who = user.email if user else "guest"
        self.sub_title = f"{who}  Pending ({self.tracker.pending().total_count})"
        for view in self.query(PendingView):
            view.reload()

    # ── Focus helpers ──────────────────────────────────────────

    def _focused_target(self) -> tuple[str, int] | None:
        focused = self.focused
        if not isinstance(focused, DataTable) or focused.id not in ("hours-table", "week-table", "month-table"):
            return None
        kind = {"hours-table": "day", "week-table": "week", "month-table": "month"}[focused.id]
        return kind, focused.cursor_row

    # ── Actions ────────────────────────────────────────────────

    def action_shift_day(self, n: int) -> None:
        self.tracker.shift_day(n)
        self._load_data()

    def action_shift_week(self, n: int) -> None:
        self.tracker.shift_week(n)
        self._load_data()

    def action_shift_month(self, n: int) -> None:
        self.tracker.shift_month(n)
        self._load_data()

    def action_today(self) -> None:
        self.tracker.today()
        self._load_data()

    def action_toggle_done(self) -> None:
        target = self._focused_target()
        if target is None:
            return
        kind, row = target
        t = self.tracker
        if kind == "day":
            entry = t.day().tasks.get(row)
            t.set_task(row, done=not (entry and entry.done))
        elif kind == "week" and row < len(t.week().goals):
            t.set_week_goal(row, done=not t.week().goals[row].done)
        elif kind == "month" and row < len(t.month().goals):
            t.set_month_goal(row, done=not t.month().goals[row].done)
        self._load_data()

    def action_edit(self) -> None:
        target = self._focused_target()
        if target is None:
            return
        kind, row = target
        t = self.tracker
        if kind == "day":
            entry = t.day().tasks.get(row)
            text = entry.text if entry else ""
        else:
            goals = t.week().goals if kind == "week" else t.month().goals
            text = goals[row].text if row < len(goals) else ""
        self._editing = target
        editor = self.query_one("#edit-input", Input)
        editor.value = text
        editor.display = True
        editor.focus()

    @on(Input.Submitted, "#edit-input")
    def _on_edit_submitted(self, event: Input.Submitted) -> None:
        if self._editing is not None:
            kind, row = self._editing
            t = self.tracker
            if kind == "day":
                t.set_task(row, text=event.value)
            elif kind == "week":
                t.set_week_goal(min(row, len(t.week().goals)), text=event.value)
            else:
                t.set_month_goal(min(row, len(t.month().goals)), text=event.value)
        self.action_cancel_edit()
        self._load_data()

    def action_cancel_edit(self) -> None:
        self._editing = None
        editor = self.query_one("#edit-input", Input)
        editor.display = False
        self.query_one("#hours-table", DataTable).focus()

    def action_add_goal(self) -> None:
        focused = self.focused
        if isinstance(focused, DataTable) and focused.id == "month-table":
            self.tracker.add_month_goal()
        else:
            self.tracker.add_week_goal()
        self._load_data()

    def action_remove_goal(self) -> None:
        focused = self.focused
        if isinstance(focused, DataTable) and focused.id == "month-table":
            self.tracker.remove_month_goal()
        else:
            self.tracker.remove_week_goal()
        self._load_data()

    @on(TextArea.Changed, "#note-area")
    def _on_note_change(self, event: TextArea.Changed) -> None:
        if self._loading_note:
            return
        self.tracker.set_note(event.text_area.text)

    def action_clear_current(self) -> None:
        self.tracker.clear_current()
        self._load_data()
        self.notify(f"Cleared {self.tracker.day_key} (not saved yet)")

    def action_clear_week(self) -> None:
        self.tracker.set_week_goals([])
        self._load_data()
        self.notify(f"Cleared week of {self.tracker.week_key} (not saved yet)")

    def action_clear_month(self) -> None:
        self.tracker.set_month_goals([])
        self._load_data()
        self.notify(f"Cleared {self.tracker.month_key} (not saved yet)")

    def action_save(self) -> None:
        if self.tracker.user is None:
            self.notify("Sign in to sync.", severity="warning")
            return
        self._do_save()

    @work(thread=True)
    def _do_save(self) -> None:
        ok = self.tracker.save()
        if ok:
            self.call_from_thread(self.notify, "Saved.", title="Sync")
        else:
            self.call_from_thread(self.notify, "Sync failed; kept local copy.", title="Sync", severity="warning")

    def action_mark_pending_done(self) -> None:
        views = list(self.query(PendingView))
        if not views:
            return
        target = views[0].selected()
        if target is None:
            return
        kind, key, pos = target
        t = self.tracker
        mark = {"daily": t.mark_daily_done, "weekly": t.mark_weekly_done, "monthly": t.mark_monthly_done}[kind]
        try:
            mark(key, pos)
        except NotCurrentPeriodError:
            self.notify("Only items from the current period can be completed here.", severity="warning")
            return
        self._refresh_pending_count()

    def action_logout(self) -> None:
        self.auth.sign_out()
        self._switch_to("dashboard")
        self.push_screen(LoginScreen(self.auth), self._after_login)

    def action_quit_app(self) -> None:
        self.tracker.close()
        self.exit()

    # ── Screen switching via overlay ───────────────────────────

    def action_show_pending(self) -> None:
        self._switch_to("dashboard" if self.current_view == "pending" else "pending")

    def action_show_notes(self) -> None:
        self._switch_to("dashboard" if self.current_view == "notes" else "notes")

    def action_show_dashboard(self) -> None:
        self._switch_to("dashboard")

    def _switch_to(self, view: str) -> None:
        main = self.query_one("#main-layout", Horizontal)
        for old in self.query(".overlay-screen"):
            old.remove()

        panes = (self.query_one("#left-pane"), self.query_one("#right-pane"))
        if view == "dashboard":
            for pane in panes:
                pane.display = True
            self._load_data()
        else:
            for pane in panes:
                pane.display = False
            if view == "pending":
                main.mount(PendingView(self.tracker, classes="overlay-screen"))
            elif view == "notes":
                main.mount(NotesView(self.tracker, classes="overlay-screen"))
        self.current_view = view


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set DAYGRID_ROOT or create the directory first.")
        sys.exit(1)

    configure_logging(root, filename=root / "daygrid.log")
    app = DayGridApp()
    app.run()


if __name__ == "__main__":
    main()
