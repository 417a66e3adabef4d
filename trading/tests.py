from datetime import datetime
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError, OperationalError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from .balances import BalanceLedger
from .confirmation import ConfirmationEngine
from .events import (
    ORDER_CANCELED,
    ORDER_CONFIRMED,
    ORDER_CREATED,
    SALE_CANCELED,
    SALE_CREATED,
    EventPublisher,
    NullEventPublisher,
    RecordingEventPublisher,
)
from .exceptions import (
    Conflict,
    InsufficientStock,
    InternalError,
    InvalidState,
    NotFound,
    ValidationError,
)
from .models import (
    BalanceEntry,
    CashIn,
    Currency,
    CurrencyTotals,
    Customer,
    InvoiceCounter,
    Order,
    Product,
    ProductWriteOff,
    Purchase,
    Sale,
    SaleReturn,
    Supplier,
    Warehouse,
)
from .orders import OrderService
from .payments import PaymentService
from .purchases import PurchaseService
from .returns import ReturnEngine, derive_return_status
from .stock import StockLedger
from .unit_of_work import UnitOfWork


class ExplodingPublisher(EventPublisher):
    def publish(self, event_name, payload):
        raise RuntimeError("broker down")


class TradingTestCase(TestCase):
    def setUp(self):
        super().setUp()
        self.User = get_user_model()
        self.cashier = self.User.objects.create_user(
            username="cashier",
            password="pass1234",
            role=self.User.Roles.CASHIER,
        )
        self.agent = self.User.objects.create_user(
            username="agent",
            password="pass1234",
            role=self.User.Roles.AGENT,
        )
        self.supplier = Supplier.objects.create(name="Supplier A")
        self.customer = Customer.objects.create(
            name="Customer A", phone="+998901234567", address="Chorsu 12"
        )
        self.uzs_warehouse = Warehouse.objects.create(
            name="UZS warehouse", currency=Currency.UZS
        )
        self.usd_warehouse = Warehouse.objects.create(
            name="USD warehouse", currency=Currency.USD
        )
        self.product_a = Product.objects.create(
            supplier=self.supplier,
            name="Cable",
            warehouse_currency=Currency.UZS,
            qty=Decimal("10"),
            buy_price=Decimal("700.00"),
            sell_price=Decimal("1000.00"),
        )
        self.product_b = Product.objects.create(
            supplier=self.supplier,
            name="Switch",
            warehouse_currency=Currency.USD,
            qty=Decimal("5"),
            buy_price=Decimal("3.00"),
            sell_price=Decimal("5.00"),
        )
        self.publisher = RecordingEventPublisher()

    def _order(self, *lines, customer=None):
        return OrderService(publisher=self.publisher).create_order(
            (customer or self.customer).pk,
            [{"product": product.pk, "qty": qty} for product, qty in lines],
            agent=self.agent,
        )

    def _confirm(self, order):
        return ConfirmationEngine(publisher=self.publisher).confirm_order(
            order.pk, actor=self.cashier
        )

    def _sell(self, *lines):
        return self._confirm(self._order(*lines))


class StockLedgerTests(TradingTestCase):
    def test_decrement_reduces_quantity(self):
        with UnitOfWork() as uow:
            product = StockLedger().reserve_and_decrement(uow, self.product_a.pk, 4)
        self.assertEqual(product.qty, Decimal("6"))

    def test_decrement_beyond_stock_raises(self):
        with self.assertRaises(InsufficientStock) as ctx:
            with UnitOfWork() as uow:
                StockLedger().reserve_and_decrement(uow, self.product_a.pk, 11)
        self.assertEqual(ctx.exception.context["available"], Decimal("10"))
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_decrement_unknown_product_raises_not_found(self):
        with self.assertRaises(NotFound):
            with UnitOfWork() as uow:
                StockLedger().reserve_and_decrement(uow, 999999, 1)

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            with UnitOfWork() as uow:
                StockLedger().reserve_and_decrement(uow, self.product_a.pk, 0)

    def test_writes_outside_unit_of_work_rejected(self):
        with self.assertRaises(InternalError):
            StockLedger().reserve_and_decrement(UnitOfWork(), self.product_a.pk, 1)

    def test_negative_restock_clamps_to_zero(self):
        with self.assertLogs("trading.stock", level="WARNING"):
            with UnitOfWork() as uow:
                product = StockLedger().restock(uow, self.product_a.pk, -15)
        self.assertEqual(product.qty, Decimal("0"))

    def test_write_off_records_loss_at_buy_price(self):
        with UnitOfWork() as uow:
            write_off = StockLedger().write_off(
                uow, self.product_a.pk, 2, "Damaged in transit", actor=self.cashier
            )
        self.assertEqual(write_off.loss_amount, Decimal("1400.00"))
        self.assertEqual(write_off.currency, Currency.UZS)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("8"))

    def test_write_off_requires_reason(self):
        with self.assertRaises(ValidationError):
            with UnitOfWork() as uow:
                StockLedger().write_off(uow, self.product_a.pk, 1, "  ")
        self.assertFalse(ProductWriteOff.objects.exists())


class BalanceLedgerTests(TradingTestCase):
    def setUp(self):
        super().setUp()
        self.ledger = BalanceLedger()
        self.account = Customer.objects.create(
            name="Opening",
            opening_balance_uzs=Decimal("1000.00"),
            balance_uzs=Decimal("1000.00"),
        )

    def test_payment_then_debt_replays_to_balance(self):
        with UnitOfWork() as uow:
            self.ledger.apply_delta(uow, self.account, Currency.UZS, Decimal("500"))
            self.ledger.apply_delta(uow, self.account, Currency.UZS, Decimal("-200"))

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance_uzs, Decimal("700.00"))
        entries = list(self.ledger.history(self.account, Currency.UZS))
        self.assertEqual(
            [entry.direction for entry in entries],
            [BalanceEntry.Direction.PAYMENT, BalanceEntry.Direction.DEBT],
        )
        self.assertEqual(
            [entry.amount for entry in entries], [Decimal("500.00"), Decimal("200.00")]
        )
        self.assertEqual(entries[-1].balance_after, Decimal("700.00"))
        self.assertEqual(
            self.ledger.replay(self.account, Currency.UZS), Decimal("700.00")
        )

    def test_currencies_are_independent(self):
        with UnitOfWork() as uow:
            self.ledger.record_debt(uow, self.account, Currency.USD, Decimal("12.50"))
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance_uzs, Decimal("1000.00"))
        self.assertEqual(self.account.balance_usd, Decimal("12.50"))

    def test_zero_delta_rejected(self):
        with self.assertRaises(ValidationError):
            with UnitOfWork() as uow:
                self.ledger.apply_delta(uow, self.account, Currency.UZS, 0)
        self.assertFalse(BalanceEntry.objects.exists())

    def test_direction_must_match_sign(self):
        with self.assertRaises(ValidationError):
            with UnitOfWork() as uow:
                self.ledger.apply_delta(
                    uow,
                    self.account,
                    Currency.UZS,
                    Decimal("100"),
                    direction=BalanceEntry.Direction.DEBT,
                )

    def test_unknown_currency_rejected(self):
        with self.assertRaises(ValidationError):
            with UnitOfWork() as uow:
                self.ledger.apply_delta(uow, self.account, "EUR", Decimal("100"))

    def test_mutation_outside_unit_of_work_rejected(self):
        with self.assertRaises(InternalError):
            self.ledger.apply_delta(UnitOfWork(), self.account, Currency.UZS, 100)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance_uzs, Decimal("1000.00"))

    def test_supplier_history_is_separate(self):
        with UnitOfWork() as uow:
            self.ledger.record_debt(uow, self.supplier, Currency.UZS, 300)
        self.assertEqual(self.ledger.history(self.supplier).count(), 1)
        self.assertEqual(self.ledger.history(self.account).count(), 0)

    def test_only_counterparties_have_a_ledger(self):
        with self.assertRaises(TypeError):
            self.ledger.history(self.uzs_warehouse)


class UnitOfWorkTests(TradingTestCase):
    def test_contention_becomes_conflict(self):
        with self.assertRaises(Conflict):
            with UnitOfWork():
                raise OperationalError("database is locked")

    def test_other_database_errors_become_internal_error(self):
        with self.assertRaises(InternalError):
            with UnitOfWork():
                raise DatabaseError("disk I/O error")

    def test_constraint_violation_is_not_a_conflict(self):
        with self.assertRaises(InternalError):
            with UnitOfWork():
                Product.objects.filter(pk=self.product_a.pk).update(qty=Decimal("-1"))
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_domain_errors_pass_through_and_roll_back(self):
        with self.assertRaises(NotFound):
            with UnitOfWork() as uow:
                StockLedger().restock(uow, self.product_a.pk, 5)
                raise NotFound("gone")
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_events_wait_for_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            with UnitOfWork(self.publisher) as uow:
                uow.publish("Ping", {"n": 1})
            self.assertEqual(self.publisher.events, [])
        self.assertEqual(self.publisher.events, [("Ping", {"n": 1})])

    def test_rolled_back_scope_publishes_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InvalidState):
                with UnitOfWork(self.publisher) as uow:
                    uow.publish("Ping", {})
                    raise InvalidState()
        self.assertEqual(callbacks, [])
        self.assertEqual(self.publisher.events, [])


class OrderServiceTests(TradingTestCase):
    def test_create_order_snapshots_lines(self):
        order = self._order((self.product_a, 3), (self.product_b, 2))
        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(order.total_uzs, Decimal("3000.00"))
        self.assertEqual(order.total_usd, Decimal("10.00"))
        line = order.items.get(product=self.product_a)
        self.assertEqual(line.name_snapshot, "Cable")
        self.assertEqual(line.price_snapshot, Decimal("1000.00"))
        self.assertEqual(line.currency_snapshot, Currency.UZS)

        Product.objects.filter(pk=self.product_a.pk).update(
            name="Cable v2", sell_price=Decimal("1500.00")
        )
        line.refresh_from_db()
        self.assertEqual(line.name_snapshot, "Cable")
        self.assertEqual(line.price_snapshot, Decimal("1000.00"))

    def test_order_creation_leaves_stock_alone(self):
        self._order((self.product_a, 3))
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_invalid_line_names_index(self):
        self.product_b.is_active = False
        self.product_b.save()
        with self.assertRaises(ValidationError) as ctx:
            self._order((self.product_a, 1), (self.product_b, 1))
        self.assertEqual(ctx.exception.context["line"], 1)
        self.assertFalse(Order.objects.exists())

    def test_zero_quantity_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self._order((self.product_a, 0))
        self.assertEqual(ctx.exception.context["line"], 0)

    def test_product_without_sell_price_rejected(self):
        self.product_a.sell_price = Decimal("0.00")
        self.product_a.save()
        with self.assertRaises(ValidationError):
            self._order((self.product_a, 1))

    def test_empty_order_rejected(self):
        with self.assertRaises(ValidationError):
            OrderService(publisher=self.publisher).create_order(
                self.customer.pk, [], agent=self.agent
            )

    def test_unknown_customer_raises_not_found(self):
        with self.assertRaises(NotFound):
            OrderService(publisher=self.publisher).create_order(
                999999, [{"product": self.product_a.pk, "qty": 1}], agent=self.agent
            )

    def test_order_created_event(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self._order((self.product_a, 2))
        self.assertEqual(self.publisher.names(), [ORDER_CREATED])
        self.assertEqual(self.publisher.events[0][1]["order_id"], order.pk)
        self.assertEqual(self.publisher.events[0][1]["total_uzs"], "2000.00")


class ConfirmationEngineTests(TradingTestCase):
    def test_confirm_builds_sale_per_currency(self):
        order = self._order((self.product_a, 3), (self.product_b, 2))
        sale = self._confirm(order)

        totals = sale.currency_totals
        self.assertEqual(totals[Currency.UZS].grand_total, Decimal("3000.00"))
        self.assertEqual(totals[Currency.USD].grand_total, Decimal("10.00"))
        self.assertEqual(totals[Currency.UZS].debt, Decimal("3000.00"))
        self.assertEqual(totals[Currency.USD].paid, Decimal("0.00"))
        self.product_a.refresh_from_db()
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("7"))
        self.assertEqual(self.product_b.qty, Decimal("3"))

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(order.confirmed_by, self.cashier)
        self.assertEqual(order.sale, sale)

        items = {item.product_id: item for item in sale.items.all()}
        self.assertEqual(items[self.product_a.pk].warehouse, self.uzs_warehouse)
        self.assertEqual(items[self.product_b.pk].warehouse, self.usd_warehouse)
        self.assertEqual(items[self.product_a.pk].buy_price, Decimal("700.00"))
        self.assertEqual(sale.customer_name, "Customer A")
        self.assertEqual(sale.customer_address, "Chorsu 12")

    def test_confirm_books_customer_debt(self):
        self._sell((self.product_a, 3), (self.product_b, 2))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("3000.00"))
        self.assertEqual(self.customer.balance_usd, Decimal("10.00"))
        entries = BalanceLedger().history(self.customer)
        self.assertEqual(entries.count(), 2)
        self.assertTrue(
            all(entry.direction == BalanceEntry.Direction.DEBT for entry in entries)
        )

    def test_invoice_numbers_are_sequential_per_year(self):
        year = timezone.localdate().year
        first = self._sell((self.product_a, 1))
        second = self._sell((self.product_a, 1))
        self.assertEqual(first.invoice_no, f"S-{year}-000001")
        self.assertEqual(second.invoice_no, f"S-{year}-000002")
        self.assertEqual(InvoiceCounter.objects.get(year=year).last_value, 2)

    def test_invoice_allocation_needs_unit_of_work(self):
        with self.assertRaises(InternalError):
            ConfirmationEngine(publisher=self.publisher).next_invoice_no(UnitOfWork())

    def test_insufficient_stock_leaves_everything_untouched(self):
        scarce = Product.objects.create(
            supplier=self.supplier,
            name="Relay",
            warehouse_currency=Currency.UZS,
            qty=Decimal("1"),
            sell_price=Decimal("200.00"),
        )
        order = self._order((self.product_a, 3), (scarce, 2))

        with self.assertRaises(InsufficientStock) as ctx:
            self._confirm(order)

        self.assertEqual(ctx.exception.context["line"], 1)
        self.assertEqual(ctx.exception.context["product"], scarce.pk)
        order.refresh_from_db()
        scarce.refresh_from_db()
        self.product_a.refresh_from_db()
        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(scarce.qty, Decimal("1"))
        self.assertEqual(self.product_a.qty, Decimal("10"))
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(BalanceEntry.objects.exists())

    def test_second_confirm_raises_invalid_state(self):
        order = self._order((self.product_a, 2))
        self._confirm(order)
        with self.assertRaises(InvalidState):
            self._confirm(order)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("8"))
        self.assertEqual(Sale.objects.count(), 1)

    def test_concurrent_confirm_loses_and_rolls_back(self):
        router = Product.objects.create(
            supplier=self.supplier,
            name="Router",
            warehouse_currency=Currency.UZS,
            qty=Decimal("2"),
            buy_price=Decimal("400.00"),
            sell_price=Decimal("600.00"),
        )
        order = self._order((router, 2))
        real_enter = UnitOfWork.__enter__
        rivals = []

        def rival_confirms_first(uow):
            if not rivals:
                rivals.append(order.pk)
                ConfirmationEngine(publisher=NullEventPublisher()).confirm_order(
                    order.pk, actor=self.cashier
                )
            return real_enter(uow)

        with mock.patch.object(UnitOfWork, "__enter__", rival_confirms_first):
            with self.assertRaises(InvalidState):
                self._confirm(order)

        router.refresh_from_db()
        order.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(router.qty, Decimal("0"))
        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(Sale.objects.filter(order=order).count(), 1)
        self.assertEqual(self.customer.balance_uzs, Decimal("1200.00"))
        self.assertNotIn(ORDER_CONFIRMED, self.publisher.names())

    def test_missing_warehouse_aborts_confirmation(self):
        self.usd_warehouse.delete()
        order = self._order((self.product_b, 1))
        with self.assertRaises(NotFound) as ctx:
            self._confirm(order)
        self.assertEqual(ctx.exception.code, "warehouse_missing")
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_b.qty, Decimal("5"))

    def test_unknown_order_raises_not_found(self):
        with self.assertRaises(NotFound):
            ConfirmationEngine(publisher=self.publisher).confirm_order(
                999999, actor=self.cashier
            )

    def test_confirm_publishes_after_commit(self):
        order = self._order((self.product_a, 1))
        with self.captureOnCommitCallbacks(execute=True):
            sale = self._confirm(order)
        self.assertEqual(
            self.publisher.events,
            [
                (
                    ORDER_CONFIRMED,
                    {
                        "order_id": order.pk,
                        "sale_id": sale.pk,
                        "invoice_no": sale.invoice_no,
                    },
                )
            ],
        )

    def test_failed_confirm_publishes_nothing(self):
        order = self._order((self.product_a, 11))
        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InsufficientStock):
                self._confirm(order)
        self.assertEqual(self.publisher.events, [])

    def test_publisher_failure_does_not_undo_sale(self):
        order = self._order((self.product_a, 1))
        engine = ConfirmationEngine(publisher=ExplodingPublisher())
        with self.assertLogs("trading.events", level="WARNING"):
            with self.captureOnCommitCallbacks(execute=True):
                sale = engine.confirm_order(order.pk, actor=self.cashier)
        self.assertTrue(Sale.objects.filter(pk=sale.pk).exists())

    def test_cancel_order_truncates_reason(self):
        order = self._order((self.product_a, 1))
        with self.captureOnCommitCallbacks(execute=True):
            order = ConfirmationEngine(publisher=self.publisher).cancel_order(
                order.pk, actor=self.cashier, reason="x" * 400
            )
        self.assertEqual(order.status, Order.Status.CANCELED)
        self.assertEqual(len(order.cancel_reason), 300)
        self.assertEqual(order.canceled_by, self.cashier)
        self.assertEqual(self.publisher.names(), [ORDER_CANCELED])

    def test_cancel_order_default_reason(self):
        order = self._order((self.product_a, 1))
        order = ConfirmationEngine(publisher=self.publisher).cancel_order(
            order.pk, actor=self.cashier
        )
        self.assertEqual(order.cancel_reason, "Canceled")

    def test_cancelled_order_cannot_be_confirmed(self):
        order = self._order((self.product_a, 1))
        engine = ConfirmationEngine(publisher=self.publisher)
        engine.cancel_order(order.pk, actor=self.cashier)
        with self.assertRaises(InvalidState):
            engine.confirm_order(order.pk, actor=self.cashier)
        with self.assertRaises(InvalidState):
            engine.cancel_order(order.pk, actor=self.cashier)

    def test_cancel_sale_restocks_unreturned_goods(self):
        sale = self._sell((self.product_a, 5))
        ReturnEngine(publisher=self.publisher).create_return(
            sale.pk,
            self.uzs_warehouse.pk,
            [{"product": self.product_a.pk, "qty": 2}],
            SaleReturn.RefundType.NO_REFUND,
            0,
            actor=self.cashier,
        )
        engine = ConfirmationEngine(publisher=self.publisher)
        with self.captureOnCommitCallbacks(execute=True):
            sale = engine.cancel_sale(sale.pk, actor=self.cashier)

        self.assertEqual(sale.status, Sale.Status.CANCELED)
        self.assertEqual(sale.cancel_reason, "Sale canceled")
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("5000.00"))
        self.assertEqual(self.publisher.names(), [SALE_CANCELED])
        with self.assertRaises(InvalidState):
            engine.cancel_sale(sale.pk, actor=self.cashier)


class DirectSaleTests(TradingTestCase):
    def _direct(self, items, **kwargs):
        return ConfirmationEngine(publisher=self.publisher).create_direct_sale(
            items, actor=self.cashier, **kwargs
        )

    def test_discount_and_partial_payment_leave_debt(self):
        sale = self._direct(
            [
                {"product": self.product_a.pk, "qty": 3},
                {"product": self.product_b.pk, "qty": 2},
            ],
            customer_id=self.customer.pk,
            discounts={Currency.UZS: Decimal("500")},
            payments=[
                {"currency": Currency.UZS, "amount": Decimal("1500")},
                {
                    "currency": Currency.USD,
                    "amount": Decimal("10"),
                    "method": CashIn.Method.CARD,
                },
            ],
        )
        self.assertIsNone(sale.order)
        self.assertTrue(sale.invoice_no.startswith("S-"))
        self.assertEqual(
            sale.totals_for(Currency.UZS),
            CurrencyTotals(
                subtotal=Decimal("3000.00"),
                discount=Decimal("500.00"),
                grand_total=Decimal("2500.00"),
                paid=Decimal("1500.00"),
                debt=Decimal("1000.00"),
            ),
        )
        usd = sale.totals_for(Currency.USD)
        self.assertEqual(usd.grand_total, Decimal("10.00"))
        self.assertEqual(usd.debt, Decimal("0.00"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("1000.00"))
        self.assertEqual(self.customer.balance_usd, Decimal("0.00"))
        self.product_a.refresh_from_db()
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("7"))
        self.assertEqual(self.product_b.qty, Decimal("3"))

        line = sale.items.get(product=self.product_a)
        self.assertEqual(line.warehouse, self.uzs_warehouse)
        self.assertEqual(line.buy_price, Decimal("700.00"))
        cash_ins = CashIn.objects.filter(note=f"Sale {sale.invoice_no}")
        self.assertEqual(cash_ins.count(), 2)
        self.assertEqual(
            cash_ins.get(currency=Currency.USD).method, CashIn.Method.CARD
        )

    def test_price_override_and_sale_date(self):
        sale_date = timezone.make_aware(datetime(2025, 3, 1, 12, 0))
        sale = self._direct(
            [{"product": self.product_a.pk, "qty": 2, "price": "900"}],
            customer_id=self.customer.pk,
            sale_date=sale_date,
        )
        self.assertEqual(sale.invoice_no, "S-2025-000001")
        self.assertEqual(sale.sale_date, sale_date)
        self.assertEqual(sale.subtotal_uzs, Decimal("1800.00"))
        self.assertEqual(sale.items.get().price, Decimal("900.00"))
        entry = BalanceLedger().history(self.customer, Currency.UZS).get()
        self.assertEqual(entry.date, sale_date)

    def test_walk_in_sale_must_be_paid_in_full(self):
        items = [{"product": self.product_a.pk, "qty": 2}]
        with self.assertRaises(ValidationError):
            self._direct(
                items, payments=[{"currency": Currency.UZS, "amount": "1500"}]
            )
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))
        self.assertFalse(Sale.objects.exists())

        sale = self._direct(
            items, payments=[{"currency": Currency.UZS, "amount": "2000"}]
        )
        self.assertIsNone(sale.customer)
        self.assertEqual(sale.customer_name, "")
        self.assertEqual(sale.debt_uzs, Decimal("0.00"))
        self.assertFalse(BalanceEntry.objects.exists())
        self.assertIsNone(CashIn.objects.get().customer)

    def test_name_without_id_registers_customer(self):
        sale = self._direct(
            [{"product": self.product_a.pk, "qty": 1}],
            customer_name="  New Shop ",
            customer_phone="+998 90 111 22 33",
        )
        customer = Customer.objects.get(name="New Shop")
        self.assertEqual(customer.phone, "+998901112233")
        self.assertEqual(sale.customer, customer)
        self.assertEqual(sale.customer_name, "New Shop")
        self.assertEqual(customer.balance_uzs, Decimal("1000.00"))

    def test_totals_are_checked(self):
        items = [{"product": self.product_a.pk, "qty": 1}]
        with self.assertRaises(ValidationError):
            self._direct(
                items,
                customer_id=self.customer.pk,
                discounts={Currency.UZS: "1500"},
            )
        with self.assertRaises(ValidationError):
            self._direct(
                items,
                customer_id=self.customer.pk,
                payments=[{"currency": Currency.UZS, "amount": "1000.01"}],
            )
        with self.assertRaises(ValidationError):
            self._direct(
                items,
                customer_id=self.customer.pk,
                payments=[{"currency": "EUR", "amount": "1"}],
            )
        self.assertFalse(Sale.objects.exists())

    def test_short_stock_rolls_back_everything(self):
        with self.assertRaises(InsufficientStock) as ctx:
            self._direct(
                [
                    {"product": self.product_a.pk, "qty": 2},
                    {"product": self.product_b.pk, "qty": 6},
                ],
                customer_id=self.customer.pk,
                payments=[{"currency": Currency.UZS, "amount": "2000"}],
            )
        self.assertEqual(ctx.exception.context["line"], 1)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(CashIn.objects.exists())

    def test_unknown_customer_raises_not_found(self):
        with self.assertRaises(NotFound):
            self._direct(
                [{"product": self.product_a.pk, "qty": 1}], customer_id=999999
            )
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_publishes_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            sale = self._direct(
                [{"product": self.product_a.pk, "qty": 1}],
                customer_id=self.customer.pk,
            )
        self.assertEqual(self.publisher.names(), [SALE_CREATED])
        self.assertEqual(self.publisher.events[0][1]["sale_id"], sale.pk)


class ReturnEngineTests(TradingTestCase):
    def setUp(self):
        super().setUp()
        self.sale = self._sell((self.product_a, 5))
        self.engine = ReturnEngine(publisher=NullEventPublisher())

    def _return(
        self,
        qty,
        refund_type=SaleReturn.RefundType.NO_REFUND,
        refund_amount=0,
        warehouse=None,
        product=None,
    ):
        return self.engine.create_return(
            self.sale.pk,
            (warehouse or self.uzs_warehouse).pk,
            [{"product": (product or self.product_a).pk, "qty": qty}],
            refund_type,
            refund_amount,
            actor=self.cashier,
        )

    def test_partial_then_over_return_then_full(self):
        self._return(3)
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.return_status, Sale.ReturnStatus.PARTIAL_RETURN)

        with self.assertRaises(ValidationError):
            self._return(3)
        self.assertEqual(SaleReturn.objects.count(), 1)

        self._return(2)
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.return_status, Sale.ReturnStatus.FULL_RETURN)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("10"))

    def test_lines_of_one_request_count_together(self):
        with self.assertRaises(ValidationError) as ctx:
            self.engine.create_return(
                self.sale.pk,
                self.uzs_warehouse.pk,
                [
                    {"product": self.product_a.pk, "qty": 3},
                    {"product": self.product_a.pk, "qty": 3},
                ],
                SaleReturn.RefundType.NO_REFUND,
                0,
                actor=self.cashier,
            )
        self.assertEqual(ctx.exception.context["line"], 1)
        self.assertFalse(SaleReturn.objects.exists())

    def test_return_copies_sale_price(self):
        Product.objects.filter(pk=self.product_a.pk).update(sell_price=Decimal("9999"))
        sale_return = self._return(2)
        item = sale_return.items.get()
        self.assertEqual(item.price, Decimal("1000.00"))
        self.assertEqual(sale_return.return_subtotal, Decimal("2000.00"))
        self.assertEqual(sale_return.currency, Currency.UZS)

    def test_wrong_warehouse_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self._return(1, warehouse=self.usd_warehouse)
        self.assertEqual(ctx.exception.context["warehouse"], self.usd_warehouse.pk)

    def test_product_not_in_sale_rejected(self):
        with self.assertRaises(ValidationError):
            self._return(1, product=self.product_b)

    def test_refund_rules(self):
        with self.assertRaises(ValidationError):
            self._return(1, SaleReturn.RefundType.NO_REFUND, Decimal("100"))
        with self.assertRaises(ValidationError):
            self._return(1, SaleReturn.RefundType.CASH, Decimal("1000.01"))
        with self.assertRaises(ValidationError):
            self._return(1, "STORE_CREDIT", 0)
        sale_return = self._return(1, SaleReturn.RefundType.CASH, Decimal("1000"))
        self.assertEqual(sale_return.refund_amount, Decimal("1000.00"))

    def test_balance_refund_credits_customer(self):
        self._return(2, SaleReturn.RefundType.BALANCE, Decimal("2000"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("3000.00"))
        entry = BalanceLedger().history(self.customer, Currency.UZS).last()
        self.assertEqual(entry.direction, BalanceEntry.Direction.PAYMENT)
        self.assertEqual(entry.amount, Decimal("2000.00"))

    def test_balance_refund_clears_sale_debt_for_later_payments(self):
        self._return(3, SaleReturn.RefundType.BALANCE, Decimal("3000"))
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.debt_uzs, Decimal("2000.00"))
        self.assertEqual(self.sale.grand_total_uzs, Decimal("5000.00"))

        PaymentService().receive_customer_payment(
            self.customer.pk, Currency.UZS, Decimal("2000")
        )
        self.customer.refresh_from_db()
        self.sale.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("0.00"))
        self.assertEqual(self.sale.debt_uzs, Decimal("0.00"))
        self.assertEqual(self.sale.paid_uzs, Decimal("2000.00"))

    def test_balance_refund_above_sale_debt_only_clears_what_is_owed(self):
        PaymentService().receive_customer_payment(
            self.customer.pk, Currency.UZS, Decimal("4000")
        )
        self._return(2, SaleReturn.RefundType.BALANCE, Decimal("2000"))
        self.sale.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(self.sale.debt_uzs, Decimal("0.00"))
        self.assertEqual(self.customer.balance_uzs, Decimal("-1000.00"))

    def test_canceled_sale_rejects_returns(self):
        ConfirmationEngine(publisher=NullEventPublisher()).cancel_sale(
            self.sale.pk, actor=self.cashier
        )
        with self.assertRaises(InvalidState):
            self._return(1)

    def test_unknown_sale_and_warehouse(self):
        with self.assertRaises(NotFound):
            self.engine.create_return(
                999999,
                self.uzs_warehouse.pk,
                [{"product": self.product_a.pk, "qty": 1}],
                SaleReturn.RefundType.NO_REFUND,
                0,
                actor=self.cashier,
            )
        with self.assertRaises(NotFound):
            self.engine.create_return(
                self.sale.pk,
                999999,
                [{"product": self.product_a.pk, "qty": 1}],
                SaleReturn.RefundType.NO_REFUND,
                0,
                actor=self.cashier,
            )

    def test_concurrent_return_detected_on_recheck(self):
        key = (self.product_a.pk, self.uzs_warehouse.pk)
        with mock.patch(
            "trading.returns.returned_quantities",
            side_effect=[{}, {key: Decimal("6")}],
        ):
            with self.assertRaises(Conflict):
                self._return(1)
        self.assertFalse(SaleReturn.objects.exists())
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("5"))

    def test_derive_return_status(self):
        self.assertEqual(
            derive_return_status(Decimal("5"), Decimal("0")),
            Sale.ReturnStatus.NO_RETURN,
        )
        self.assertEqual(
            derive_return_status(Decimal("5"), Decimal("3")),
            Sale.ReturnStatus.PARTIAL_RETURN,
        )
        self.assertEqual(
            derive_return_status(Decimal("5"), Decimal("5")),
            Sale.ReturnStatus.FULL_RETURN,
        )


class PurchaseServiceTests(TradingTestCase):
    def _purchase(self, **kwargs):
        items = [
            {
                "name": "Lamp",
                "currency": Currency.UZS,
                "qty": 10,
                "buy_price": Decimal("500"),
                "sell_price": Decimal("800"),
            },
            {
                "name": "Switch",
                "currency": Currency.USD,
                "qty": 4,
                "buy_price": Decimal("3.50"),
                "sell_price": Decimal("5.50"),
            },
        ]
        return PurchaseService().create_purchase(
            self.supplier.pk, "B-001", items, actor=self.cashier, **kwargs
        )

    def test_create_purchase_upserts_and_books_debt(self):
        purchase = self._purchase(paid_uzs=Decimal("2000"))

        self.assertEqual(purchase.total_uzs, Decimal("5000.00"))
        self.assertEqual(purchase.total_usd, Decimal("14.00"))
        lamp = Product.objects.get(name="Lamp")
        self.assertEqual(lamp.qty, Decimal("10"))
        self.assertEqual(lamp.sell_price, Decimal("800.00"))
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_b.qty, Decimal("9"))
        self.assertEqual(self.product_b.buy_price, Decimal("3.50"))

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.balance_uzs, Decimal("3000.00"))
        self.assertEqual(self.supplier.balance_usd, Decimal("14.00"))
        self.assertEqual(BalanceLedger().history(self.supplier).count(), 3)

    def test_delete_purchase_reverses_everything(self):
        purchase = self._purchase(paid_uzs=Decimal("2000"))
        PurchaseService().delete_purchase(purchase.pk)

        self.assertFalse(Purchase.objects.exists())
        self.assertEqual(Product.objects.get(name="Lamp").qty, Decimal("0"))
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_b.qty, Decimal("5"))
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.balance_uzs, Decimal("0.00"))
        self.assertEqual(self.supplier.balance_usd, Decimal("0.00"))
        ledger = BalanceLedger()
        self.assertEqual(ledger.replay(self.supplier, Currency.UZS), Decimal("0.00"))

    def test_delete_purchase_after_sale_fails(self):
        purchase = self._purchase()
        lamp = Product.objects.get(name="Lamp")
        with UnitOfWork() as uow:
            StockLedger().write_off(uow, lamp.pk, 8, "Broken")

        with self.assertRaises(InsufficientStock):
            PurchaseService().delete_purchase(purchase.pk)
        self.assertTrue(Purchase.objects.filter(pk=purchase.pk).exists())

    def test_invalid_line_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            PurchaseService().create_purchase(
                self.supplier.pk,
                "B-002",
                [{"name": "Lamp", "currency": "EUR", "qty": 1, "buy_price": 1}],
            )
        self.assertEqual(ctx.exception.context["line"], 0)

    def test_unknown_supplier(self):
        with self.assertRaises(NotFound):
            PurchaseService().create_purchase(
                999999,
                "B-003",
                [{"name": "Lamp", "currency": "UZS", "qty": 1, "buy_price": 1}],
            )


class PaymentServiceTests(TradingTestCase):
    def test_payment_settles_oldest_sales_first(self):
        first = self._sell((self.product_a, 2))
        second = self._sell((self.product_a, 1))

        result = PaymentService().receive_customer_payment(
            self.customer.pk, Currency.UZS, Decimal("2500"), actor=self.cashier
        )

        self.assertEqual(result.applied, Decimal("2500.00"))
        self.assertEqual(result.change, Decimal("0.00"))
        self.assertEqual(result.previous_debt, Decimal("3000.00"))
        self.assertEqual(result.remaining_debt, Decimal("500.00"))
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.debt_uzs, Decimal("0.00"))
        self.assertEqual(first.paid_uzs, Decimal("2000.00"))
        self.assertEqual(second.debt_uzs, Decimal("500.00"))
        self.assertEqual(second.paid_uzs, Decimal("500.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("500.00"))

    def test_overpayment_becomes_prepayment(self):
        self._sell((self.product_a, 1))
        result = PaymentService().receive_customer_payment(
            self.customer.pk, Currency.UZS, Decimal("1500")
        )

        self.assertEqual(result.applied, Decimal("1000.00"))
        self.assertEqual(result.change, Decimal("500.00"))
        self.assertEqual(result.cash_in.amount, Decimal("1500.00"))
        self.assertEqual(result.cash_in.target_type, CashIn.Target.CUSTOMER)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("-500.00"))
        directions = [
            entry.direction
            for entry in BalanceLedger().history(self.customer, Currency.UZS)
        ]
        self.assertEqual(
            directions,
            [
                BalanceEntry.Direction.DEBT,
                BalanceEntry.Direction.PAYMENT,
                BalanceEntry.Direction.PREPAYMENT,
            ],
        )

    def test_invalid_payments_rejected(self):
        service = PaymentService()
        with self.assertRaises(ValidationError):
            service.receive_customer_payment(self.customer.pk, Currency.UZS, 0)
        with self.assertRaises(ValidationError):
            service.receive_customer_payment(
                self.customer.pk, Currency.UZS, 10, method="CHEQUE"
            )
        with self.assertRaises(NotFound):
            service.receive_customer_payment(999999, Currency.UZS, 10)
        self.assertFalse(CashIn.objects.exists())

    def test_pay_supplier(self):
        self.supplier.opening_balance_usd = Decimal("100.00")
        self.supplier.balance_usd = Decimal("100.00")
        self.supplier.save()

        result = PaymentService().pay_supplier(
            self.supplier.pk, Currency.USD, Decimal("150")
        )

        self.assertEqual(result.applied, Decimal("100.00"))
        self.assertEqual(result.change, Decimal("50.00"))
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.balance_usd, Decimal("-50.00"))
        self.assertEqual(
            BalanceLedger().replay(self.supplier, Currency.USD), Decimal("-50.00")
        )

    def test_adjust_customer_balance(self):
        service = PaymentService()
        entry = service.adjust_customer_balance(self.customer.pk, Currency.UZS, 300)
        self.assertEqual(entry.direction, BalanceEntry.Direction.DEBT)
        service.adjust_customer_balance(self.customer.pk, Currency.UZS, -100)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("200.00"))


class CreateWarehousesCommandTests(TestCase):
    def test_command_is_idempotent(self):
        call_command("create_warehouses", verbosity=0)
        call_command("create_warehouses", verbosity=0)
        self.assertEqual(
            sorted(Warehouse.objects.values_list("currency", flat=True)),
            [Currency.USD, Currency.UZS],
        )


class APITestBase(TradingTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.User.objects.create_user(
            username="api-admin",
            password="pass1234",
            role=self.User.Roles.ADMIN,
        )
        self.client = APIClient()
        self.client.force_authenticate(self.admin)
        self.agent_client = APIClient()
        self.agent_client.force_authenticate(self.agent)


class OrderAPITests(APITestBase):
    def test_agent_creates_order(self):
        url = reverse("order-list")
        payload = {
            "customer": self.customer.pk,
            "items": [{"product": self.product_a.pk, "qty": "3"}],
        }
        response = self.agent_client.post(url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_uzs"], "3000.00")
        self.assertEqual(response.data["status"], Order.Status.NEW)
        self.assertEqual(response.data["agent"], self.agent.pk)

    def test_invalid_line_is_bad_request(self):
        url = reverse("order-list")
        payload = {
            "customer": self.customer.pk,
            "items": [{"product": 999999, "qty": "1"}],
        }
        response = self.client.post(url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "validation_error")
        self.assertEqual(response.data["line"], 0)

    def test_agent_sees_only_own_orders(self):
        own = self._order((self.product_a, 1))
        other_agent = self.User.objects.create_user(
            username="agent-2", password="pass1234", role=self.User.Roles.AGENT
        )
        OrderService(publisher=self.publisher).create_order(
            self.customer.pk,
            [{"product": self.product_a.pk, "qty": 1}],
            agent=other_agent,
        )
        response = self.agent_client.get(reverse("order-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.data], [own.pk])

    def test_confirm_order(self):
        order = self._order((self.product_a, 3), (self.product_b, 2))
        url = reverse("order-confirm", args=[order.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["invoice_no"].startswith("S-"))
        self.assertEqual(response.data["currency_totals"]["UZS"]["grand_total"], "3000.00")
        self.assertEqual(response.data["currency_totals"]["USD"]["grand_total"], "10.00")

    def test_second_confirm_is_conflict(self):
        order = self._order((self.product_a, 1))
        url = reverse("order-confirm", args=[order.pk])
        self.client.post(url)
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"], "invalid_state")
        self.assertEqual(response.data["order"], order.pk)

    def test_insufficient_stock_error_body(self):
        order = self._order((self.product_a, 20))
        response = self.client.post(reverse("order-confirm", args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"], "insufficient_stock")
        self.assertEqual(response.data["line"], 0)
        self.assertEqual(response.data["product"], self.product_a.pk)

    def test_confirm_unknown_order(self):
        response = self.client.post(reverse("order-confirm", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"], "not_found")

    def test_agent_cannot_confirm(self):
        order = self._order((self.product_a, 1))
        response = self.agent_client.post(reverse("order-confirm", args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.NEW)

    def test_cancel_order(self):
        order = self._order((self.product_a, 1))
        url = reverse("order-cancel", args=[order.pk])
        response = self.client.post(url, {"reason": "Customer changed mind"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Order.Status.CANCELED)
        self.assertEqual(response.data["cancel_reason"], "Customer changed mind")


class SaleAPITests(APITestBase):
    def setUp(self):
        super().setUp()
        self.sale = self._sell((self.product_a, 5))

    def test_list_sales(self):
        response = self.client.get(reverse("sale-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_create_return(self):
        payload = {
            "sale": self.sale.pk,
            "warehouse": self.uzs_warehouse.pk,
            "items": [{"product": self.product_a.pk, "qty": "2"}],
            "refund_type": SaleReturn.RefundType.CASH,
            "refund_amount": "2000.00",
        }
        response = self.client.post(reverse("sale-return-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["return_subtotal"], "2000.00")
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.return_status, Sale.ReturnStatus.PARTIAL_RETURN)

    def test_over_return_is_bad_request(self):
        payload = {
            "sale": self.sale.pk,
            "warehouse": self.uzs_warehouse.pk,
            "items": [{"product": self.product_a.pk, "qty": "6"}],
            "refund_type": SaleReturn.RefundType.NO_REFUND,
        }
        response = self.client.post(reverse("sale-return-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "validation_error")

    def test_cancel_sale_admin_only(self):
        url = reverse("sale-cancel", args=[self.sale.pk])
        cashier_client = APIClient()
        cashier_client.force_authenticate(self.cashier)
        response = cashier_client.post(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.post(url, {"reason": "Duplicate"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Sale.Status.CANCELED)

    def test_cashier_creates_counter_sale(self):
        cashier_client = APIClient()
        cashier_client.force_authenticate(self.cashier)
        payload = {
            "customer": self.customer.pk,
            "items": [
                {"product": self.product_a.pk, "qty": "2"},
                {"product": self.product_b.pk, "qty": "1", "price": "4.50"},
            ],
            "discount_uzs": "200.00",
            "payments": [
                {"currency": Currency.UZS, "amount": "1000.00"},
                {"currency": Currency.USD, "amount": "4.50", "method": "CARD"},
            ],
        }
        response = cashier_client.post(reverse("sale-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data["order"])
        self.assertEqual(
            response.data["currency_totals"][Currency.UZS],
            {
                "subtotal": "2000.00",
                "discount": "200.00",
                "grand_total": "1800.00",
                "paid": "1000.00",
                "debt": "800.00",
            },
        )
        self.assertEqual(response.data["currency_totals"][Currency.USD]["debt"], "0.00")
        self.assertEqual(len(response.data["items"]), 2)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance_uzs, Decimal("5800.00"))

    def test_unpaid_walk_in_sale_is_bad_request(self):
        payload = {"items": [{"product": self.product_a.pk, "qty": "1"}]}
        response = self.client.post(reverse("sale-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "validation_error")

    def test_accountant_cannot_sell(self):
        accountant = self.User.objects.create_user(
            username="accountant",
            password="pass1234",
            role=self.User.Roles.ACCOUNTANT,
        )
        client = APIClient()
        client.force_authenticate(accountant)
        payload = {
            "items": [{"product": self.product_a.pk, "qty": "1"}],
            "payments": [{"currency": Currency.UZS, "amount": "1000"}],
        }
        response = client.post(reverse("sale-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Sale.objects.count(), 1)


class CounterpartyAPITests(APITestBase):
    def test_create_customer_with_opening_balance(self):
        payload = {"name": "Customer B", "opening_balance_uzs": "250.00"}
        response = self.client.post(reverse("customer-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["balance_uzs"], "250.00")

    def test_customer_pay_and_history(self):
        self._sell((self.product_a, 2))
        url = reverse("customer-pay", args=[self.customer.pk])
        response = self.client.post(
            url, {"currency": "UZS", "amount": "2500.00"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["applied"], "2000.00")
        self.assertEqual(response.data["change"], "500.00")

        response = self.client.get(
            reverse("customer-history", args=[self.customer.pk]), {"currency": "UZS"}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [row["direction"] for row in response.data],
            ["DEBT", "PAYMENT", "PREPAYMENT"],
        )

    def test_adjust_balance(self):
        url = reverse("customer-adjust-balance", args=[self.customer.pk])
        response = self.client.post(
            url, {"currency": "USD", "amount": "15.00"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance_after"], "15.00")

    def test_supplier_pay(self):
        url = reverse("supplier-pay", args=[self.supplier.pk])
        response = self.client.post(
            url, {"currency": "USD", "amount": "10.00", "method": "CARD"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["cash_in"]["target_type"], "SUPPLIER")


class PurchaseAPITests(APITestBase):
    def test_create_and_delete_purchase(self):
        payload = {
            "supplier": self.supplier.pk,
            "batch_no": "B-100",
            "items": [
                {
                    "name": "Lamp",
                    "currency": "UZS",
                    "qty": "10",
                    "buy_price": "500",
                    "sell_price": "800",
                }
            ],
            "paid_uzs": "1000",
        }
        response = self.client.post(reverse("purchase-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_uzs"], "5000.00")

        url = reverse("purchase-detail", args=[response.data["id"]])
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.balance_uzs, Decimal("0.00"))


class WriteOffAPITests(APITestBase):
    def test_create_write_off(self):
        payload = {"product": self.product_a.pk, "qty": "2", "reason": "Broken"}
        response = self.client.post(reverse("write-off-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["loss_amount"], "1400.00")
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.qty, Decimal("8"))

    def test_write_off_beyond_stock(self):
        payload = {"product": self.product_a.pk, "qty": "20", "reason": "Broken"}
        response = self.client.post(reverse("write-off-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"], "insufficient_stock")
