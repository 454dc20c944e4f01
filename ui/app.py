# ABOUTME: Streamlit UI: landing, login/signup, email check, onboarding, then dashboard/plan/measurements/vision.
# ABOUTME: The current path lives in the `page` query param; the JWT lives in session_state via SessionContext.

from datetime import date

import streamlit as st

from core.completions import TacticType
from core.config import CYCLE_WEEKS, DAYS_PER_WEEK
from core.cycle import week_date_range
from core.errors import ConfirmationRequired
from core.measurements import has_target
from ui.api_client import APIError, TrackerAPI
from ui.client_storage import ClientStorage
from ui.router import (
    ACCOUNT_VERIFICATION_PATH,
    APP_PATH,
    DASHBOARD_PATH,
    LOGIN_PATH,
    SIGNUP_PATH,
    VIEWS,
    handle_verification_status,
    path_from_view,
    resolve_route,
)
from ui.session import CONFIRMATION_SENT, SIGNED_IN, UNCONFIRMED, SessionContext
from ui.workspace import Workspace

PAGE_PARAM = "page"
VERIFICATION_PARAM = "verification_status"
DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
ACCOUNTABILITY_OPTIONS = (
    "Rarely or never",
    "Occasionally, when things feel off",
    "Regularly, but without a system",
    "Consistently, with structure",
)


def _storage() -> ClientStorage:
    if "client_storage" not in st.session_state:
        st.session_state["client_storage"] = ClientStorage()
    return st.session_state["client_storage"]


def _session() -> SessionContext:
    """One SessionContext per browser session; restored from the stored token on first use."""
    if "session_ctx" not in st.session_state:
        ctx = SessionContext(TrackerAPI(), _storage(), st.session_state)
        ctx.subscribe(_on_auth_change)
        ctx.init()
        st.session_state["session_ctx"] = ctx
    return st.session_state["session_ctx"]


def _on_auth_change(event: str, _user) -> None:
    workspace = st.session_state.get("workspace")
    if workspace is not None and workspace.on_auth_change(event):
        # Cached data belongs to the previous account.
        del st.session_state["workspace"]


def _workspace() -> Workspace:
    if "workspace" not in st.session_state:
        ws = Workspace(_session().api)
        ws.load()
        st.session_state["workspace"] = ws
    return st.session_state["workspace"]


def _current_path() -> str:
    return st.query_params.get(PAGE_PARAM, "/") or "/"


def _navigate(path: str) -> None:
    if VERIFICATION_PARAM in st.query_params:
        del st.query_params[VERIFICATION_PARAM]
    st.query_params[PAGE_PARAM] = path
    st.rerun()


# Public screens


def _render_landing():
    st.title("12 Week Year")
    st.write(
        "Plan a 12-week cycle, break goals into daily and weekly tactics, "
        "and score your execution every week."
    )
    col_login, col_signup = st.columns(2)
    if col_login.button("Sign in", key="landing_login"):
        _navigate(LOGIN_PATH)
    if col_signup.button("Get started", key="landing_signup", type="primary"):
        _navigate(SIGNUP_PATH)


def _render_auth(mode: str):
    session = _session()
    notice = _storage().take_verification_notice()
    if notice:
        st.session_state["auth_notice"] = notice
    if st.session_state.get("auth_notice"):
        st.info(st.session_state["auth_notice"])

    st.title("Create your account" if mode == "signup" else "Welcome back")
    with st.form(f"{mode}_form"):
        name = st.text_input("Name", key="signup_name") if mode == "signup" else ""
        email = st.text_input("Email", key=f"{mode}_email")
        password = st.text_input("Password", type="password", key=f"{mode}_password")
        submitted = st.form_submit_button("Create account" if mode == "signup" else "Sign in")

    if submitted:
        try:
            if mode == "signup":
                result = session.sign_up(email, password, name)
            else:
                result = session.sign_in(email, password)
        except ValueError as e:
            st.error(str(e))
        except APIError as e:
            if e.status_code == 409:
                st.error("An account with this email already exists.")
            else:
                st.error(e.message)
        else:
            st.session_state.pop("auth_notice", None)
            if result in (CONFIRMATION_SENT, UNCONFIRMED):
                _navigate(ACCOUNT_VERIFICATION_PATH)
            elif result == SIGNED_IN:
                if mode == "signup":
                    _storage().set_onboarding_step("welcome")
                _navigate(DASHBOARD_PATH)

    if mode == "signup":
        if st.button("Already have an account? Sign in", key="to_login"):
            _navigate(LOGIN_PATH)
    elif st.button("New here? Create an account", key="to_signup"):
        _navigate(SIGNUP_PATH)


def _render_check_email():
    storage = _storage()
    notice = storage.take_verification_notice()
    if notice:
        st.info(notice)
    email = storage.signup_email()
    st.title("Check your email")
    if email:
        st.write(f"We sent a confirmation link to **{email}**. Follow it to activate your account.")
    else:
        st.write("Follow the confirmation link we emailed you to activate your account.")

    col_resend, col_change = st.columns(2)
    if col_resend.button("Resend email", key="resend_email", disabled=not email):
        try:
            _session().resend_confirmation(email)
            st.success("Email sent")
        except (ValueError, APIError):
            st.error("We could not resend the email yet. Please try again.")
    if col_change.button("Use a different account", key="change_account"):
        storage.clear_signup_email()
        storage.set_change_account(True)
        _navigate(LOGIN_PATH)


# Onboarding


def _render_welcome():
    _storage().set_onboarding_step("welcome")
    st.title("Welcome to your 12 Week Year")
    st.write("Twelve weeks, a handful of goals, and the tactics that move them. Let's set you up.")
    if st.button("Continue", type="primary"):
        _storage().set_onboarding_step("user-profile")
        _navigate("/app/onboard/user-profile")


def _render_user_profile():
    _storage().set_onboarding_step("user-profile")
    user = _session().user or {}
    st.title("What's your name?")
    st.text_input("Your name", value=user.get("name", ""), key="onboard_name")
    if st.button("Continue", type="primary"):
        _storage().set_onboarding_step("accountability")
        _navigate("/app/onboard/accountability")


def _render_accountability():
    _storage().set_onboarding_step("accountability")
    st.title("Accountability checkpoint")
    st.radio("How often do you intentionally account for your actions and time?", ACCOUNTABILITY_OPTIONS)
    st.text_area("Anything else we should know?", key="onboard_accountability_details")
    if st.button("Continue", type="primary"):
        _storage().set_onboarding_step("calendar")
        _navigate("/app/onboard/calendar")


def _render_calendar():
    _storage().set_onboarding_step("calendar")
    st.title("How do you manage events?")
    st.caption("Calendar sync is coming soon.")
    if st.button("Finish setup", type="primary"):
        _storage().set_onboarding_step("done")
        _navigate(DASHBOARD_PATH)


# App views


def _render_alerts(ws: Workspace):
    for alert in ws.take_alerts():
        st.error(alert)


def _render_week_picker(ws: Workspace):
    week = st.sidebar.number_input(
        "Viewing week", min_value=1, max_value=CYCLE_WEEKS, value=ws.view_week, step=1
    )
    ws.set_view_week(int(week))
    if ws.cycle:
        start, end = week_date_range(ws.cycle.start_date, ws.view_week)
        st.sidebar.caption(f"{start:%b %d} – {end:%b %d} · current week {ws.actual_week}")


def _render_dashboard(ws: Workspace):
    st.title(f"Week {ws.view_week}")
    scores = ws.scores()
    col_week, col_last, col_overall = st.columns(3)
    col_week.metric("Weekly score", f"{scores['weekly_score']:.0f}%")
    last = scores["previous_week_score"]
    col_last.metric("Last week", "–" if last is None else f"{last:.0f}%")
    col_overall.metric("12-week progress", f"{scores['overall_progress']:.0f}%")

    if st.button("Get tactical briefing", key="briefing_btn"):
        with st.spinner("Thinking..."):
            st.session_state["briefing_text"] = ws.briefing()
    if st.session_state.get("briefing_text"):
        with st.container(border=True):
            st.markdown(st.session_state["briefing_text"])

    for goal in ws.goals:
        tactics = [t for t in ws.tactics_for_goal(goal.id) if ws.view_week in t.assigned_weeks]
        if not tactics:
            continue
        st.subheader(goal.name or "Untitled goal")
        for tactic in tactics:
            _render_tactic_checkin(ws, tactic)


def _render_tactic_checkin(ws: Workspace, tactic):
    week = ws.view_week
    value = ws.completion(tactic.id, week)
    if tactic.type == TacticType.DAILY:
        st.caption(tactic.name or "Untitled tactic")
        cols = st.columns(DAYS_PER_WEEK)
        for i, label in enumerate(DAY_LABELS):
            checked = cols[i].checkbox(label, value=value[i], key=f"day_{tactic.id}_{week}_{i}")
            if checked != value[i]:
                ws.toggle_day(tactic.id, week, i)
    else:
        done = st.checkbox(tactic.name or "Untitled tactic", value=value is True, key=f"wk_{tactic.id}_{week}")
        if done != (value is True):
            ws.set_weekly_done(tactic.id, week, done)


def _render_plan(ws: Workspace):
    st.title("Plan")
    if st.button("Add goal", key="add_goal"):
        ws.add_goal()
        st.rerun()

    for index, goal in enumerate(ws.goals):
        with st.expander(goal.name or "Untitled goal", expanded=True):
            st.text_input(
                "Goal",
                value=goal.name,
                key=f"goal_name_{goal.id}",
                on_change=lambda gid=goal.id: ws.update_goal(gid, name=st.session_state[f"goal_name_{gid}"]),
            )
            st.text_area(
                "Description",
                value=goal.description,
                key=f"goal_desc_{goal.id}",
                on_change=lambda gid=goal.id: ws.update_goal(
                    gid, description=st.session_state[f"goal_desc_{gid}"]
                ),
            )
            col_up, col_down, col_delete = st.columns(3)
            if col_up.button("Move up", key=f"goal_up_{goal.id}", disabled=index == 0):
                ws.move_goal(index, index - 1)
                st.rerun()
            if col_down.button("Move down", key=f"goal_down_{goal.id}", disabled=index == len(ws.goals) - 1):
                ws.move_goal(index, index + 1)
                st.rerun()
            if col_delete.button("Delete goal", key=f"goal_del_{goal.id}"):
                ws.delete_goal(goal.id)
                st.rerun()

            _render_measurement_configs(ws, goal)
            _render_goal_tactics(ws, goal)


def _render_measurement_configs(ws: Workspace, goal):
    st.markdown("**Measurements**")
    for config in goal.measurement_configs:
        cols = st.columns([3, 2, 2, 1])
        cols[0].text_input(
            "Name",
            value=config.name,
            key=f"cfg_name_{config.id}",
            on_change=lambda gid=goal.id, cid=config.id: ws.update_measurement_config(
                gid, cid, name=st.session_state[f"cfg_name_{cid}"]
            ),
        )
        cols[1].text_input(
            "Unit",
            value=config.unit,
            key=f"cfg_unit_{config.id}",
            on_change=lambda gid=goal.id, cid=config.id: ws.update_measurement_config(
                gid, cid, unit=st.session_state[f"cfg_unit_{cid}"]
            ),
        )
        cols[2].number_input(
            "Target",
            value=float(config.target or 0),
            min_value=0.0,
            key=f"cfg_target_{config.id}",
            on_change=lambda gid=goal.id, cid=config.id: ws.update_measurement_config(
                gid, cid, target=st.session_state[f"cfg_target_{cid}"] or None
            ),
        )
        if cols[3].button("Remove", key=f"cfg_del_{config.id}"):
            ws.remove_measurement_config(goal.id, config.id)
            st.rerun()
    if st.button("Add measurement", key=f"cfg_add_{goal.id}"):
        ws.add_measurement_config(goal.id, name="New measurement")
        st.rerun()


def _render_goal_tactics(ws: Workspace, goal):
    st.markdown("**Tactics**")
    tactics = ws.tactics_for_goal(goal.id)
    for index, tactic in enumerate(tactics):
        cols = st.columns([4, 2, 1, 1, 1])
        cols[0].text_input(
            "Tactic",
            value=tactic.name,
            key=f"tactic_name_{tactic.id}",
            on_change=lambda tid=tactic.id: ws.update_tactic(tid, name=st.session_state[f"tactic_name_{tid}"]),
        )
        types = [TacticType.DAILY.value, TacticType.WEEKLY.value]
        chosen = cols[1].selectbox(
            "Type", types, index=types.index(tactic.type.value), key=f"tactic_type_{tactic.id}"
        )
        if chosen != tactic.type.value:
            try:
                ws.change_tactic_type(tactic.id, TacticType(chosen))
            except ConfirmationRequired:
                st.session_state["pending_type_switch"] = (tactic.id, chosen)
        if cols[2].button("↑", key=f"tactic_up_{tactic.id}", disabled=index == 0):
            ws.move_tactic(goal.id, index, index - 1)
            st.rerun()
        if cols[3].button("↓", key=f"tactic_down_{tactic.id}", disabled=index == len(tactics) - 1):
            ws.move_tactic(goal.id, index, index + 1)
            st.rerun()
        if cols[4].button("Delete", key=f"tactic_del_{tactic.id}"):
            ws.delete_tactic(tactic.id)
            st.rerun()
        weeks = st.multiselect(
            "Weeks", list(range(1, CYCLE_WEEKS + 1)), default=tactic.assigned_weeks, key=f"tactic_weeks_{tactic.id}"
        )
        if sorted(weeks) != tactic.assigned_weeks:
            ws.update_tactic(tactic.id, assigned_weeks=weeks)

    pending = st.session_state.get("pending_type_switch")
    if pending and pending[0] in {t.id for t in tactics}:
        st.warning("Switching type erases all recorded completions for this tactic.")
        col_yes, col_no = st.columns(2)
        if col_yes.button("Erase and switch", key=f"confirm_switch_{pending[0]}"):
            ws.change_tactic_type(pending[0], TacticType(pending[1]), confirmed=True)
            del st.session_state["pending_type_switch"]
            st.rerun()
        if col_no.button("Keep current type", key=f"cancel_switch_{pending[0]}"):
            del st.session_state["pending_type_switch"]
            st.session_state.pop(f"tactic_type_{pending[0]}", None)
            st.rerun()

    if st.button("Add tactic", key=f"tactic_add_{goal.id}"):
        ws.add_tactic(goal.id)
        st.rerun()


def _render_measurements(ws: Workspace):
    st.title("Measurements")
    week = ws.view_week
    for goal in ws.goals:
        if not goal.measurement_configs:
            continue
        st.subheader(goal.name or "Untitled goal")
        for config in goal.measurement_configs:
            series = ws.series(config.id)
            current = series[week - 1]
            st.number_input(
                f"{config.name} ({config.unit}) · week {week}",
                value=float(current) if current is not None else 0.0,
                key=f"m_{config.id}_{week}",
                on_change=lambda gid=goal.id, cid=config.id, w=week: ws.update_measurement(
                    gid, cid, w, st.session_state[f"m_{cid}_{w}"]
                ),
            )
            latest = ws.latest(config.id)
            if has_target(config):
                progress = ws.progress(config) or 0.0
                st.progress(min(max(progress / 100, 0.0), 1.0), text=f"{latest:g} / {config.target:g} {config.unit}")
            else:
                st.caption(f"Latest: {latest:g} {config.unit}")
            st.line_chart(series)


def _render_vision(ws: Workspace):
    st.title("Vision")
    st.text_area(
        "Long-term vision",
        value=ws.vision.long_term,
        key="vision_long",
        on_change=lambda: ws.update_vision(long_term=st.session_state["vision_long"]),
    )
    st.text_area(
        "Three-year / short-term vision",
        value=ws.vision.short_term,
        key="vision_short",
        on_change=lambda: ws.update_vision(short_term=st.session_state["vision_short"]),
    )


def _render_cycle_settings(ws: Workspace):
    with st.sidebar.expander("Cycle"):
        if ws.cycle:
            start = st.date_input("Cycle start", value=date.fromisoformat(ws.cycle.start_date[:10]))
            if start.isoformat() != ws.cycle.start_date[:10]:
                ws.update_cycle_start_date(start.isoformat())
                st.rerun()
        confirm = st.checkbox("I understand week 1 moves to this week", key="confirm_reset")
        if st.button("Reset to current week", key="reset_cycle"):
            try:
                ws.reset_cycle(confirmed=confirm)
                st.rerun()
            except ConfirmationRequired as e:
                st.warning(str(e))


def _render_app(view: str):
    session = _session()
    ws = _workspace()
    st.sidebar.write(f"Signed in as {(session.user or {}).get('name') or (session.user or {}).get('email')}")
    chosen = st.sidebar.radio("View", VIEWS, index=VIEWS.index(view), format_func=str.capitalize)
    if chosen != view:
        ws.flush()
        _navigate(path_from_view(chosen))
    _render_week_picker(ws)
    _render_cycle_settings(ws)
    message = ws.status.message()
    if message:
        st.sidebar.caption(message)
    if st.sidebar.button("Logout"):
        session.sign_out()
        _navigate(LOGIN_PATH)
        return

    _render_alerts(ws)
    if view == "plan":
        _render_plan(ws)
    elif view == "measurements":
        _render_measurements(ws)
    elif view == "vision":
        _render_vision(ws)
    else:
        _render_dashboard(ws)


SCREENS = {
    "landing": _render_landing,
    "check_email": _render_check_email,
    "welcome": _render_welcome,
    "user-profile": _render_user_profile,
    "accountability": _render_accountability,
    "calendar": _render_calendar,
}


def main():
    session = _session()
    storage = _storage()
    path = _current_path()
    status = st.query_params.get(VERIFICATION_PARAM)

    if status and path == APP_PATH and st.session_state.get("handled_verification") != status:
        st.session_state["handled_verification"] = status
        redirect = handle_verification_status(
            status, user=session.user, storage=storage, sign_out=session.sign_out
        )
        if redirect:
            _navigate(redirect)
            return

    route = resolve_route(
        path,
        signed_in=session.is_authenticated,
        auth_loading=session.loading,
        onboarding_step=storage.onboarding_step(),
        verification_status=status,
    )
    if route.redirect:
        _navigate(route.redirect)
        return
    if route.screen in ("login", "signup"):
        _render_auth(route.screen)
    elif route.screen == "app":
        _render_app(route.view or "dashboard")
    elif route.screen in SCREENS:
        SCREENS[route.screen]()
    else:
        st.caption("Loading...")


if __name__ == "__main__":
    main()
