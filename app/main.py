"""
Streamlit Frontend for Colocation Ledger

This is the interface the household uses every month.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation at every step of a closure
3. Clear error messages showing exactly what is left to allocate
4. Visual feedback for all operations
5. No hidden actions

The UI enforces validate-don't-compute:
- The operator types every reimbursement amount
- The remaining gap ("écart restant") is shown until it reaches zero
- Nothing is closed without an explicit "Clôturer" action
"""

from datetime import date
from decimal import Decimal

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from coloc_ledger.audit import create_correlation_id
from coloc_ledger.book import roster_for
from coloc_ledger.calculations import budget_history, credit_breakdown, summarize_month
from coloc_ledger.config import get_settings, validate_all_settings
from coloc_ledger.errors import (
    AuthorizationError,
    LedgerError,
    ValidationError,
)
from coloc_ledger.models import (
    MONTH_NAMES,
    MemberAmount,
    MemberKind,
    ReimbursementRule,
    ResidualAllocation,
    ResidualDirection,
    TransactionType,
    format_currency,
    format_month_key,
)
from coloc_ledger.orchestrator import create_app_components


# Page configuration
st.set_page_config(
    page_title="Colocation - Comptes",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


RULE_LABELS = {
    ReimbursementRule.EQUAL: "Parts égales",
    ReimbursementRule.EQUAL_STARTING_WITH_HOSTED: "Parts égales, hébergés d'abord",
    ReimbursementRule.PRIORITIZED: "Par ordre de priorité",
}


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def money(amount: Decimal) -> str:
    return format_currency(amount, get_settings().ledger.currency_symbol)


def to_decimal(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def main():
    """Main application entry point."""
    book, lifecycle, sharing_flow = get_components()

    # Sidebar navigation
    st.sidebar.title("🏠 Comptes de la coloc")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Aller à :",
        ["📅 Mois", "👥 Colocataires", "💳 Crédits", "⚙️ Paramètres"],
        index=0,
    )

    # One read of each collection per rerun
    months = book.list_months()
    members = book.list_members()

    st.sidebar.markdown("---")
    st.sidebar.metric("Économies totales", money(book.total_savings(months)))

    # Route to appropriate page
    if page == "📅 Mois":
        render_months_page(book, lifecycle, sharing_flow, months, members)
    elif page == "👥 Colocataires":
        render_members_page(book, members)
    elif page == "💳 Crédits":
        render_credits_page(book, months, members)
    elif page == "⚙️ Paramètres":
        render_settings_page(book)


# =============================================================================
# MONTHS
# =============================================================================

def render_months_page(book, lifecycle, sharing_flow, months, members):
    """Render the month list, detail and closure workflow."""
    st.title("📅 Mois")

    with st.expander("➕ Nouveau mois"):
        col1, col2 = st.columns(2)
        with col1:
            month_name = st.selectbox("Mois", MONTH_NAMES, index=date.today().month - 1)
        with col2:
            year = st.number_input("Année", min_value=2000, max_value=2100, value=date.today().year)
        if st.button("Créer le mois"):
            try:
                book.create_month(month_name, int(year))
                st.success(f"Mois {format_month_key(month_name, int(year))} créé.")
                st.rerun()
            except ValidationError as e:
                st.error(e.message)

    if not months:
        st.info("Aucun mois pour l'instant. Créez-en un ou ajoutez une transaction.")
        return

    by_key = {m.key: m for m in months}
    month_key = st.selectbox(
        "Mois affiché",
        list(reversed(by_key)),
        format_func=lambda k: f"🔒 {k}" if by_key[k].is_closed else k,
    )
    month = by_key[month_key]
    summary = summarize_month(month)
    roster = roster_for(month, members)

    col1, col2, col3 = st.columns(3)
    col1.metric("Cotisations", money(summary.total_dues))
    col2.metric("Dépenses", money(summary.total_expenses))
    col3.metric("Déficit" if summary.is_deficit else "Excédent", money(abs(summary.global_balance)))

    if summary.balances:
        st.markdown("### Soldes")
        st.table([
            {
                "Colocataire": name,
                "Cotisations": money(b.dues),
                "Dépenses": money(b.expenses),
                "Solde": money(b.balance),
            }
            for name, b in summary.balances.items()
        ])

    render_transactions(book, month, roster)

    remarks = st.text_area("Remarques", value=month.remarks or "")
    if st.button("💾 Enregistrer les remarques"):
        book.update_remarks(month_key, remarks)
        st.success("Remarques enregistrées.")

    st.markdown("---")
    if month.is_closed:
        render_closed_month(lifecycle, sharing_flow, month)
    else:
        render_closure(lifecycle, sharing_flow, month_key, summary, roster)


def kind_label(kind: TransactionType) -> str:
    return "Cotisation" if kind == TransactionType.DUE else "Dépense"


def render_transactions(book, month, roster):
    st.markdown("### Transactions")

    for t in month.transactions:
        col1, col2, col3 = st.columns([5, 1, 1])
        deducted = " (déduite des courses)" if t.deducted_at_purchase else ""
        col1.write(
            f"{t.date.strftime('%d/%m/%Y')} · {kind_label(t.type)}{deducted} · "
            f"{t.member_name} · {t.description} · {money(t.amount)}"
        )
        if month.is_closed:
            continue
        if col2.button("✏️", key=f"edit-{t.id}"):
            st.session_state["editing_transaction"] = t.id
        if col3.button("🗑️", key=f"del-{t.id}"):
            book.delete_transaction(month.key, t.id)
            st.rerun()

    if month.is_closed:
        return

    editing = month.find_transaction(st.session_state.get("editing_transaction") or "")
    if editing is not None:
        render_transaction_editor(book, month, editing, roster)

    with st.form("add_transaction", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            kind = st.selectbox("Type", list(TransactionType), format_func=kind_label)
            names = [m.name for m in roster]
            member_name = st.selectbox("Colocataire", names) if names else st.text_input("Colocataire")
            deducted = st.checkbox("Cotisation déduite des courses")
        with col2:
            tx_date = st.date_input("Date", value=date.today())
            description = st.text_input("Description")
            amount = st.number_input("Montant", min_value=0.0, step=0.01, format="%.2f")

        if st.form_submit_button("➕ Ajouter", type="primary"):
            try:
                book.add_transaction(
                    month.key,
                    type=kind,
                    member_name=member_name,
                    date=tx_date,
                    description=description or ("Cotisation mensuelle" if kind == TransactionType.DUE else ""),
                    amount=to_decimal(amount),
                    deducted_at_purchase=deducted and kind == TransactionType.DUE,
                )
                st.rerun()
            except ValidationError as e:
                st.error(e.message)


def render_transaction_editor(book, month, transaction, roster):
    """Prefilled form changing one transaction of an open month."""
    st.markdown(f"#### ✏️ Modifier : {transaction.description}")
    names = [m.name for m in roster]
    if transaction.member_name not in names:
        names.append(transaction.member_name)
    kinds = list(TransactionType)

    with st.form(f"edit-transaction-{transaction.id}"):
        col1, col2 = st.columns(2)
        with col1:
            kind = st.selectbox("Type", kinds, index=kinds.index(transaction.type), format_func=kind_label)
            member_name = st.selectbox("Colocataire", names, index=names.index(transaction.member_name))
            deducted = st.checkbox("Cotisation déduite des courses", value=transaction.deducted_at_purchase)
        with col2:
            tx_date = st.date_input("Date", value=transaction.date)
            description = st.text_input("Description", value=transaction.description)
            amount = st.number_input(
                "Montant",
                min_value=0.0,
                value=float(transaction.amount),
                step=0.01,
                format="%.2f",
            )

        col1, col2 = st.columns(2)
        if col1.form_submit_button("💾 Enregistrer", type="primary"):
            try:
                book.update_transaction(
                    month.key,
                    transaction.id,
                    type=kind,
                    member_name=member_name,
                    date=tx_date,
                    description=description,
                    amount=to_decimal(amount),
                    deducted_at_purchase=deducted and kind == TransactionType.DUE,
                )
                st.session_state.pop("editing_transaction", None)
                st.rerun()
            except ValidationError as e:
                st.error(e.message)
        if col2.form_submit_button("Annuler"):
            st.session_state.pop("editing_transaction", None)
            st.rerun()


def render_closure(lifecycle, sharing_flow, month_key, summary, roster):
    """Two-step closure: expense reimbursements, then the residual."""
    st.subheader("🔒 Clôturer le mois")

    drafts = st.session_state.setdefault("closure_drafts", {})
    draft = drafts.get(month_key)

    # Step 1: Pass A
    if draft is None:
        st.markdown("**Étape 1 : Remboursement des dépenses**")
        proposals = lifecycle.allocator.propose_expense_reimbursements(summary)
        entries = []
        for proposal in proposals:
            value = st.number_input(
                f"À rembourser maintenant à {proposal.member_name}",
                min_value=0.0,
                value=float(proposal.amount),
                step=0.01,
                format="%.2f",
                key=f"passA-{month_key}-{proposal.member_name}",
            )
            entries.append(MemberAmount(member_name=proposal.member_name, amount=to_decimal(value)))

        if st.button("Continuer", type="primary"):
            correlation_id = create_correlation_id()
            try:
                drafts[month_key] = lifecycle.begin_closure(month_key, entries, correlation_id)
                st.session_state.closure_correlation_id = correlation_id
                st.rerun()
            except ValidationError as e:
                st.markdown(f"""
                <div class="error-box">
                    <h4>❌ Remboursements incomplets</h4>
                    <p>Écart restant : {money(e.delta) if e.delta is not None else '-'}</p>
                    <p>{e.message}</p>
                </div>
                """, unsafe_allow_html=True)
        return

    # Step 2: Pass B
    surplus = draft.direction == ResidualDirection.SURPLUS
    st.markdown(
        f"**Étape 2 : {'Répartition de l’excédent' if surplus else 'Couverture du déficit'}** "
        f"({money(draft.residual_target)})"
    )
    savings = st.number_input(
        "Versement à l'épargne" if surplus else "Retrait de l'épargne",
        min_value=0.0,
        step=0.01,
        format="%.2f",
        key=f"passB-savings-{month_key}",
    )
    lines = []
    for member in roster:
        available = draft.credits.get(member.name, Decimal("0.00"))
        label = (
            f"Remboursement de crédit à {member.name} (disponible : {money(available)})"
            if surplus else f"Avance de {member.name}"
        )
        value = st.number_input(
            label,
            min_value=0.0,
            step=0.01,
            format="%.2f",
            key=f"passB-{month_key}-{member.name}",
        )
        if value:
            lines.append(MemberAmount(member_name=member.name, amount=to_decimal(value)))

    allocation = ResidualAllocation(savings_amount=to_decimal(savings), lines=lines)
    check = lifecycle.check_residual(draft, allocation, roster=[m.name for m in roster])
    box = "success-box" if check.is_valid else "warning-box"
    message = lifecycle.allocator.get_user_friendly_summary(check).replace("\n", "<br>")
    st.markdown(f'<div class="{box}">{message}</div>', unsafe_allow_html=True)

    col1, col2 = st.columns(2)
    if col1.button("✅ Clôturer", type="primary", disabled=not check.is_valid):
        try:
            result = lifecycle.confirm_closure(
                draft,
                allocation,
                st.session_state.get("closure_correlation_id"),
            )
            drafts.pop(month_key, None)
            st.success(f"Mois {result.month.key} clôturé ({len(result.settlements)} remboursements).")
            render_sharing(sharing_flow, month_key)
        except LedgerError as e:
            drafts.pop(month_key, None)
            st.error(str(e))
    if col2.button("Annuler"):
        drafts.pop(month_key, None)
        st.rerun()


def render_sharing(sharing_flow, month_key):
    with st.spinner("Envoi du bilan..."):
        result = sharing_flow.share(month_key, correlation_id=st.session_state.get("closure_correlation_id"))

    if result.document:
        st.download_button(
            "📥 Télécharger le bilan",
            data=result.document.content,
            file_name=result.document.filename,
            mime=result.document.media_type,
        )
    if result.export_error:
        st.warning(f"Le bilan n'a pas pu être généré : {result.export_error}")
    for delivery in result.deliveries:
        if delivery.success:
            st.success(f"📧 Envoyé à {delivery.recipient.name}")
        else:
            st.warning(f"📧 Échec pour {delivery.recipient.name} : {delivery.error_message}")


def render_closed_month(lifecycle, sharing_flow, month):
    st.subheader("🔒 Mois clôturé")
    if month.settlement_record:
        st.table([
            {
                "De": s.from_member,
                "Vers": s.to_member,
                "Montant": money(s.amount),
                "Motif": s.reason,
            }
            for s in month.settlement_record
        ])

    if st.button("📤 Partager le bilan"):
        render_sharing(sharing_flow, month.key)

    with st.expander("🔓 Rouvrir le mois"):
        passphrase = st.text_input("Phrase secrète", type="password")
        if st.button("Rouvrir"):
            try:
                lifecycle.reopen_month(month.key, passphrase)
                st.success("Mois rouvert. Les remboursements enregistrés ont été supprimés.")
                st.rerun()
            except AuthorizationError as e:
                st.error(str(e))


# =============================================================================
# MEMBERS, CREDITS, SETTINGS
# =============================================================================

def render_members_page(book, members):
    """Render the roster."""
    st.title("👥 Colocataires")

    for member in members:
        with st.expander(member.name):
            email = st.text_input("Email", value=member.email or "", key=f"email-{member.id}")
            due = st.number_input(
                "Cotisation mensuelle",
                min_value=0.0,
                value=float(member.monthly_due or 0),
                step=0.01,
                format="%.2f",
                key=f"due-{member.id}",
            )
            hosted = st.checkbox("Hébergé", value=member.kind == MemberKind.HOSTED, key=f"kind-{member.id}")
            groceries = st.checkbox("S'occupe des courses", value=member.handles_groceries, key=f"groc-{member.id}")
            col1, col2 = st.columns(2)
            if col1.button("💾 Enregistrer", key=f"save-{member.id}"):
                try:
                    book.update_member(
                        member.id,
                        email=email,
                        monthly_due=to_decimal(due) if due else None,
                        kind=MemberKind.HOSTED if hosted else MemberKind.VOLUNTEER,
                        handles_groceries=groceries,
                    )
                    st.rerun()
                except ValidationError as e:
                    st.error(e.message)
            if col2.button("🗑️ Supprimer", key=f"delete-{member.id}"):
                book.delete_member(member.id)
                st.rerun()

    st.markdown("---")
    with st.form("add_member", clear_on_submit=True):
        st.markdown("### Nouveau colocataire")
        name = st.text_input("Nom *")
        email = st.text_input("Email")
        hosted = st.checkbox("Hébergé")
        if st.form_submit_button("➕ Ajouter", type="primary"):
            try:
                book.add_member(
                    name=name,
                    email=email,
                    kind=MemberKind.HOSTED if hosted else MemberKind.VOLUNTEER,
                )
                st.rerun()
            except ValidationError as e:
                st.error(e.message)


def render_budget_chart(months):
    """Dues and expenses per month as bars, the global balance as a line."""
    st.markdown("### 📊 Budget mensuel")
    history = pd.DataFrame(budget_history(months))
    if history.empty:
        st.info("Aucun mois à afficher.")
        return

    for column in ("dues", "expenses", "balance"):
        history[column] = history[column].astype(float)

    symbol = get_settings().ledger.currency_symbol
    fig = go.Figure()
    fig.add_trace(go.Bar(name="Cotisations", x=history["month_key"], y=history["dues"], marker_color="#2ca02c"))
    fig.add_trace(go.Bar(name="Dépenses", x=history["month_key"], y=history["expenses"], marker_color="#d62728"))
    fig.add_trace(go.Scatter(
        name="Solde",
        x=history["month_key"],
        y=history["balance"],
        mode="lines+markers",
        line=dict(color="#1f77b4"),
    ))
    fig.update_layout(
        xaxis_title="Mois",
        yaxis_title=f"Montant ({symbol})",
        barmode="group",
        hovermode="x unified",
    )
    st.plotly_chart(fig, use_container_width=True)


def render_credits_page(book, months, members):
    """Render available credits, the budget chart and the manual credit editor."""
    st.title("💳 Crédits")

    credits = credit_breakdown(months, members)
    for breakdown in credits.values():
        st.markdown(
            f"**{breakdown.member_name}** : {money(breakdown.total)}  \n"
            f"dont {money(breakdown.manual)} de crédit manuel, "
            f"dont {money(breakdown.carried)} des mois clôturés"
        )

    render_budget_chart(months)

    if not members:
        return

    st.markdown("---")
    st.markdown("### Crédit manuel")
    member = st.selectbox("Colocataire", members, format_func=lambda m: m.name)
    amount = st.number_input("Montant (négatif pour une dette)", value=float(member.manual_credit), step=0.01, format="%.2f")
    if st.button("💾 Enregistrer le crédit"):
        book.set_manual_credit(member.id, to_decimal(amount))
        st.rerun()


def render_settings_page(book):
    """Render reimbursement settings and connection status."""
    st.title("⚙️ Paramètres")

    current = book.get_settings()
    rules = list(ReimbursementRule)
    rule = st.selectbox(
        "Règle de remboursement",
        rules,
        index=rules.index(current.rule),
        format_func=lambda r: RULE_LABELS[r],
    )
    budget = st.number_input(
        "Budget initial de l'épargne",
        min_value=0.0,
        value=float(current.initial_budget),
        step=0.01,
        format="%.2f",
    )
    if st.button("💾 Enregistrer"):
        book.save_settings(rule=rule, initial_budget=to_decimal(budget))
        st.success("Paramètres enregistrés.")

    st.markdown("---")
    st.markdown("### État des connexions")

    status = validate_all_settings()
    services = [
        ("Google Sheets (stockage)", "google_sheets"),
        ("EmailJS (envoi des bilans)", "emailjs"),
        ("Phrase secrète de réouverture", "reopen_passphrase"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Non configuré")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "Pour configurer l'application, créez un fichier `.env`. "
        "Voir `.env.example` pour les variables attendues."
    )


if __name__ == "__main__":
    main()
