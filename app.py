import logging

import streamlit as st

from symcalc import Calculator, ComputationResult, EngineConfig

# ==========================================
# UI & Frontend Logic (Streamlit)
# ==========================================

DIRECTIONS = {"Two-sided": None, "From the right (+)": "+", "From the left (-)": "-"}


class ApplicationUI:
    """Manages Streamlit UI rendering and state."""

    def __init__(self):
        self._initialize_state()

    def _initialize_state(self):
        if "history" not in st.session_state:
            st.session_state.history = []

    def render_settings(self) -> EngineConfig:
        st.sidebar.title("Settings")
        complex_mode = st.sidebar.checkbox("Show complex roots", value=False, key="complex_mode")
        verbose_steps = st.sidebar.checkbox("Show every step", value=False, key="verbose_steps")
        precision = st.sidebar.number_input("Decimal places", min_value=0, max_value=15, value=4, key="precision")
        return EngineConfig(complex_mode=complex_mode, verbose_steps=verbose_steps, precision=int(precision))

    def render_sidebar(self):
        st.sidebar.title("Computation History")
        if not st.session_state.history:
            st.sidebar.info("No computations yet.")
            return

        if st.sidebar.button("Clear History", use_container_width=True):
            st.session_state.history = []
            st.rerun()

        st.sidebar.markdown("---")
        for idx, item in enumerate(reversed(st.session_state.history)):
            with st.sidebar.expander(f"Run {len(st.session_state.history) - idx}: {item['input']}"):
                st.code(item["result"].final_answer, language=None)

    def render_trail(self, res: ComputationResult):
        st.markdown("---")
        st.markdown("### 🧩 Solution Trail")

        # 1. GIVEN
        st.markdown("**1. GIVEN:**")
        st.info(f"$$ {res.given} $$")

        # 2. METHOD
        st.markdown("**2. METHOD:**")
        st.markdown(f"> {res.method}")

        # 3. STEPS
        st.markdown("**3. STEPS:**")
        with st.container():
            for i, step in enumerate(res.steps, 1):
                st.markdown(f"**Step {i}:** `{step}`")

        # 4. FINAL ANSWER
        st.markdown("**4. FINAL ANSWER:**")
        if res.final_latex is not None:
            st.success(f"$$ {res.final_latex} $$")
        st.code(res.final_answer, language=None)

        # 5. VERIFICATION
        st.markdown("**5. VERIFICATION:**")
        parts = res.verification.split("\n\n")
        if len(parts) >= 2:
            st.markdown(parts[0])
            if res.verified:
                st.success(parts[1])
            else:
                st.warning(parts[1])
        elif res.verified:
            st.info(res.verification)
        else:
            st.warning(res.verification)

        # 6. SUMMARY
        st.markdown("**6. SUMMARY:**")
        col1, col2 = st.columns(2)
        with col1:
            st.caption(f"**Runtime:** {res.summary.get('Runtime', 'N/A')}")
            st.caption(f"**Steps:** {res.summary.get('Steps', 'N/A')}")
        with col2:
            st.caption(f"**Timestamp:** {res.summary.get('Timestamp', 'N/A')}")

    def show(self, label: str, result: ComputationResult):
        if result.is_success:
            self.render_trail(result)
            st.session_state.history.append({"input": label, "result": result})
        else:
            st.error("Computation Failed")
            st.error(result.error_message)

    def integrate_tab(self, calculator: Calculator):
        with st.form("integrate_form"):
            col1, col2 = st.columns([4, 1])
            with col1:
                integrand = st.text_input("Integrand f(x)", value="3x^2 + 2x + sin(x)", key="integrand",
                                          placeholder="e.g., x*e^(x^2)")
            with col2:
                variable = st.text_input("Variable", value="x", key="integration_variable")
            col3, col4 = st.columns(2)
            with col3:
                lower = st.text_input("Lower bound (optional)", value="", key="lower")
            with col4:
                upper = st.text_input("Upper bound (optional)", value="", key="upper")
            submit_button = st.form_submit_button("Integrate", type="primary", use_container_width=True)

        if submit_button:
            if not integrand.strip():
                st.error("Please enter a valid mathematical expression.")
                return
            with st.spinner("Integrating and verifying..."):
                result = calculator.compute_integral(integrand, variable, lower, upper)
            self.show(f"∫ {integrand}", result)

    def solve_tab(self, calculator: Calculator):
        with st.form("solve_form"):
            col1, col2 = st.columns([4, 1])
            with col1:
                equation = st.text_input("Equation", value="x^3 - 6x^2 + 11x - 6 = 0", key="equation",
                                         placeholder="e.g., x^2 - 4 = 0")
            with col2:
                variable = st.text_input("Variable", value="", key="solve_variable", placeholder="auto")
            submit_button = st.form_submit_button("Solve", type="primary", use_container_width=True)

        if submit_button:
            if not equation.strip():
                st.error("Please enter an equation.")
                return
            with st.spinner("Solving..."):
                result = calculator.compute_solve(equation, variable)
            self.show(equation, result)

    def limit_tab(self, calculator: Calculator):
        with st.form("limit_form"):
            col1, col2, col3 = st.columns([3, 1, 1])
            with col1:
                expr = st.text_input("Expression", value="sin(x)/x", key="limit_expression")
            with col2:
                variable = st.text_input("Variable", value="x", key="limit_variable")
            with col3:
                target = st.text_input("Approaches", value="0", key="target", placeholder="e.g., 0 or inf")
            side = st.radio("Direction", list(DIRECTIONS), horizontal=True, key="direction")
            submit_button = st.form_submit_button("Evaluate", type="primary", use_container_width=True)

        if submit_button:
            if not expr.strip():
                st.error("Please enter a valid mathematical expression.")
                return
            with st.spinner("Evaluating the limit..."):
                result = calculator.compute_limit(expr, variable, target or "0", DIRECTIONS[side])
            self.show(f"lim {expr}", result)

    def run(self):
        st.set_page_config(page_title="Symbolic Calculator", page_icon="∫", layout="wide")
        st.title("∫ Symbolic Calculator")
        st.markdown("Integrate expressions, solve polynomial equations up to degree 4 and evaluate limits, step by step.")

        calculator = Calculator(self.render_settings())
        self.render_sidebar()

        integrate_tab, solve_tab, limit_tab = st.tabs(["Integrate", "Solve", "Limit"])
        with integrate_tab:
            self.integrate_tab(calculator)
        with solve_tab:
            self.solve_tab(calculator)
        with limit_tab:
            self.limit_tab(calculator)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    app = ApplicationUI()
    app.run()
